"""Profitability aggregation, per-user statistics and pagination.

Everything here is a pure function of its arguments: storage backends hand
over a snapshot and get derived views back. Money stays in ``Decimal`` the
whole way through; rounding is half-up.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence

import schemas

ZERO = Decimal("0")
MINUTES_PER_HOUR = Decimal(60)


def round_half_up(value: Decimal, exponent: str = "1") -> Decimal:
    """Round to ``exponent``, ties toward positive infinity: 2.5 -> 3, -2.5 -> -2."""
    rounding = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN
    return value.quantize(Decimal(exponent), rounding=rounding)


def net_profit(session) -> Decimal:
    return Decimal(session.earnings) - Decimal(session.expenses)


def hourly_rate(session) -> Decimal:
    """Net profit per hour for one session; zero when no time was logged."""
    if session.duration_minutes <= 0:
        return ZERO
    return net_profit(session) / (Decimal(session.duration_minutes) / MINUTES_PER_HOUR)


# ---------------------------------------------------------------------------
# Profitability ranking
# ---------------------------------------------------------------------------
@dataclass
class ProfitabilityAccumulator:
    job_type: schemas.JobType
    total_sessions: int = 0
    total_minutes: int = 0
    total_earnings: Decimal = ZERO
    total_expenses: Decimal = ZERO

    def add(self, session) -> None:
        self.total_sessions += 1
        self.total_minutes += session.duration_minutes
        self.total_earnings += Decimal(session.earnings)
        self.total_expenses += Decimal(session.expenses)

    def to_profitability(self) -> schemas.JobProfitability:
        total_hours = Decimal(self.total_minutes) / MINUTES_PER_HOUR
        profit = self.total_earnings - self.total_expenses
        rate = profit / total_hours if total_hours > 0 else ZERO
        return schemas.JobProfitability(
            job_type=self.job_type,
            average_hourly_rate=int(round_half_up(rate)),
            total_sessions=self.total_sessions,
            total_hours=float(round_half_up(total_hours, "0.1")),
            total_earnings=self.total_earnings,
            total_expenses=self.total_expenses,
            net_profit=profit,
        )


def accumulate_profitability(
    sessions: Iterable, job_types: Iterable[schemas.JobType]
) -> Dict[int, ProfitabilityAccumulator]:
    """Single pass over ``sessions`` grouping them by job type id.

    Sessions whose job type is unknown are skipped. The returned dict keeps
    groups in the order their first session was seen.
    """
    by_id = {job_type.id: job_type for job_type in job_types}
    groups: Dict[int, ProfitabilityAccumulator] = {}
    for session in sessions:
        job_type = by_id.get(session.job_type_id)
        if job_type is None:
            continue
        group = groups.get(job_type.id)
        if group is None:
            group = groups[job_type.id] = ProfitabilityAccumulator(job_type=job_type)
        group.add(session)
    return groups


def rank_profitability(
    groups: Iterable[ProfitabilityAccumulator],
) -> List[schemas.JobProfitability]:
    """Round each group and order by average hourly rate, highest first.

    ``sorted`` is stable, so equal rates keep the incoming group order.
    """
    rows = [group.to_profitability() for group in groups]
    return sorted(rows, key=lambda row: row.average_hourly_rate, reverse=True)


def compute_profitability(
    sessions: Iterable, job_types: Iterable[schemas.JobType]
) -> List[schemas.JobProfitability]:
    return rank_profitability(accumulate_profitability(sessions, job_types).values())


# ---------------------------------------------------------------------------
# Per-user statistics
# ---------------------------------------------------------------------------
def compute_user_stats(sessions: Iterable) -> schemas.UserStats:
    """Totals for one user's sessions.

    ``total_earned`` is gross earnings (expenses are not subtracted), while
    ``best_hourly_rate`` is based on net profit and never drops below zero.
    """
    total_earned = ZERO
    total_minutes = 0
    best_rate = ZERO
    jobs_completed = 0

    for session in sessions:
        total_earned += Decimal(session.earnings)
        total_minutes += session.duration_minutes
        best_rate = max(best_rate, hourly_rate(session))
        jobs_completed += 1

    return schemas.UserStats(
        total_earned=total_earned,
        total_hours=float(round_half_up(Decimal(total_minutes) / MINUTES_PER_HOUR, "0.1")),
        best_hourly_rate=int(round_half_up(best_rate)),
        jobs_completed=jobs_completed,
    )


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------
def build_pagination(total: int, limit: int, offset: int) -> schemas.Pagination:
    return schemas.Pagination(
        page=offset // limit + 1,
        limit=limit,
        total=total,
        total_pages=-(-total // limit),
    )


def paginate(
    items: Sequence[schemas.JobSessionWithDetails], total: int, limit: int, offset: int
) -> schemas.JobSessionPage:
    """Wrap a backend-windowed slice with its page metadata. No re-slicing."""
    return schemas.JobSessionPage(
        sessions=list(items),
        pagination=build_pagination(total, limit, offset),
    )
