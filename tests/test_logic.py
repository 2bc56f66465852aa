from datetime import datetime, timezone
from decimal import Decimal

import schemas
import logic

TRUCKING = schemas.JobType(id=4, name="Trucking")
ROCKS = schemas.JobType(id=1, name="Breaking Rocks")
WEED = schemas.JobType(id=2, name="Growing Weed")
JOB_TYPES = [ROCKS, WEED, TRUCKING]


def make_session(session_id, job_type_id, minutes, earnings, expenses="0", user_id="u1"):
    return schemas.JobSession(
        id=session_id,
        user_id=user_id,
        job_type_id=job_type_id,
        duration_minutes=minutes,
        earnings=Decimal(earnings),
        expenses=Decimal(expenses),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


# --- Profitability ---
def test_profitability_groups_and_totals():
    sessions = [
        make_session(1, 4, 120, "1000.00", "200.00"),
        make_session(2, 4, 60, "500.00", "100.00"),
        make_session(3, 1, 30, "50.00"),
    ]
    result = logic.compute_profitability(sessions, JOB_TYPES)

    assert [row.job_type.name for row in result] == ["Trucking", "Breaking Rocks"]
    trucking = result[0]
    assert trucking.total_sessions == 2
    assert trucking.total_hours == 3.0
    assert trucking.total_earnings == Decimal("1500.00")
    assert trucking.total_expenses == Decimal("300.00")
    assert trucking.net_profit == Decimal("1200.00")
    assert trucking.average_hourly_rate == 400
    assert result[1].average_hourly_rate == 100


def test_profitability_drops_sessions_with_unknown_job_type():
    sessions = [make_session(1, 4, 60, "100"), make_session(2, 99, 60, "100")]
    result = logic.compute_profitability(sessions, JOB_TYPES)

    assert sum(row.total_sessions for row in result) == 1
    assert [row.job_type.id for row in result] == [4]


def test_profitability_net_profit_is_earnings_minus_expenses():
    sessions = [
        make_session(1, 1, 45, "10.10", "3.05"),
        make_session(2, 2, 90, "99.99", "100.00"),
        make_session(3, 1, 15, "0.00", "1.00"),
    ]
    for row in logic.compute_profitability(sessions, JOB_TYPES):
        assert row.net_profit == row.total_earnings - row.total_expenses


def test_profitability_zero_hours_gives_zero_rate():
    result = logic.compute_profitability([make_session(1, 1, 0, "100")], JOB_TYPES)

    assert result[0].total_hours == 0
    assert result[0].average_hourly_rate == 0


def test_profitability_sorted_by_rate_descending():
    sessions = [
        make_session(1, 1, 60, "10"),
        make_session(2, 2, 60, "300"),
        make_session(3, 4, 60, "20", "40"),
    ]
    rates = [row.average_hourly_rate for row in logic.compute_profitability(sessions, JOB_TYPES)]

    assert rates == sorted(rates, reverse=True)
    assert rates == [300, 10, -20]


def test_profitability_ties_keep_first_seen_order():
    sessions = [
        make_session(1, 2, 60, "100"),
        make_session(2, 4, 60, "100"),
        make_session(3, 1, 60, "100"),
    ]
    result = logic.compute_profitability(sessions, JOB_TYPES)

    assert [row.job_type.id for row in result] == [2, 4, 1]


def test_profitability_rounds_half_up():
    # 12.50 net over one hour; 15 minutes is 0.25 hours
    sessions = [make_session(1, 1, 60, "12.50"), make_session(2, 2, 15, "1")]
    result = {row.job_type.id: row for row in logic.compute_profitability(sessions, JOB_TYPES)}

    assert result[1].average_hourly_rate == 13
    assert result[2].total_hours == 0.3


def test_profitability_negative_tie_rounds_toward_positive():
    # -2.50 net over one hour
    result = logic.compute_profitability([make_session(1, 1, 60, "0.00", "2.50")], JOB_TYPES)

    assert result[0].average_hourly_rate == -2


def test_round_half_up_ties():
    assert logic.round_half_up(Decimal("2.5")) == 3
    assert logic.round_half_up(Decimal("-2.5")) == -2
    assert logic.round_half_up(Decimal("-2.51")) == -3
    assert logic.round_half_up(Decimal("-0.015"), "0.01") == Decimal("-0.01")


def test_profitability_empty_input():
    assert logic.compute_profitability([], JOB_TYPES) == []


def test_accumulate_then_rank_matches_compute():
    sessions = [make_session(1, 1, 60, "10"), make_session(2, 4, 30, "40")]
    groups = logic.accumulate_profitability(sessions, JOB_TYPES)

    assert list(groups) == [1, 4]
    assert groups[4].total_minutes == 30
    assert logic.rank_profitability(groups.values()) == logic.compute_profitability(sessions, JOB_TYPES)


def test_compute_is_repeatable():
    sessions = [make_session(1, 1, 60, "10"), make_session(2, 4, 30, "40")]
    assert logic.compute_profitability(sessions, JOB_TYPES) == logic.compute_profitability(sessions, JOB_TYPES)


# --- User stats ---
def test_user_stats_example():
    sessions = [make_session(1, 1, 60, "100"), make_session(2, 1, 30, "50")]
    stats = logic.compute_user_stats(sessions)

    assert stats.best_hourly_rate == 100
    assert stats.total_earned == Decimal("150")
    assert stats.total_hours == 1.5
    assert stats.jobs_completed == 2


def test_user_stats_empty():
    stats = logic.compute_user_stats([])

    assert stats.total_earned == 0
    assert stats.total_hours == 0
    assert stats.best_hourly_rate == 0
    assert stats.jobs_completed == 0


def test_user_stats_total_earned_is_gross():
    stats = logic.compute_user_stats([make_session(1, 1, 60, "100", "40")])

    assert stats.total_earned == Decimal("100")
    assert stats.best_hourly_rate == 60


def test_user_stats_unprofitable_sessions_never_negative():
    stats = logic.compute_user_stats([make_session(1, 1, 60, "10", "50"), make_session(2, 1, 30, "0", "5")])

    assert stats.best_hourly_rate == 0
    assert stats.jobs_completed == 2


def test_user_stats_zero_duration_counts_as_zero_rate():
    stats = logic.compute_user_stats([make_session(1, 1, 0, "100")])

    assert stats.best_hourly_rate == 0
    assert stats.total_earned == Decimal("100")


# --- Pagination ---
def test_pagination_first_and_last_page():
    first = logic.build_pagination(total=23, limit=10, offset=0)
    last = logic.build_pagination(total=23, limit=10, offset=20)

    assert (first.page, first.total_pages) == (1, 3)
    assert (last.page, last.total_pages) == (3, 3)


def test_pagination_empty_total():
    pagination = logic.build_pagination(total=0, limit=20, offset=0)

    assert pagination.total_pages == 0
    assert pagination.page == 1


def test_paginate_does_not_reslice():
    page = logic.paginate([], total=45, limit=20, offset=40)

    assert page.sessions == []
    assert page.pagination.page == 3
    assert page.pagination.total == 45
