from datetime import datetime, timezone
from decimal import Decimal

import schemas
from csv_export import export_sessions_csv, format_plain

TRUCKING = schemas.JobType(id=4, name="Trucking")


def detailed_session(
    session_id=1,
    job_type=TRUCKING,
    minutes=120,
    earnings="1000.00",
    expenses="200.00",
    user=None,
    created_at=datetime(2024, 3, 5, 23, 59, tzinfo=timezone.utc),
):
    return schemas.JobSessionWithDetails(
        id=session_id,
        user_id="u1",
        job_type_id=job_type.id,
        duration_minutes=minutes,
        earnings=Decimal(earnings),
        expenses=Decimal(expenses),
        created_at=created_at,
        job_type=job_type,
        user=user,
    )


def test_per_user_export_row():
    lines = export_sessions_csv([detailed_session()]).split("\n")

    assert lines[0] == "Date,Job Type,Duration (min),Earnings,Expenses,Net Profit,Hourly Rate"
    assert lines[1] == '2024-03-05,"Trucking",120,1000.00,200.00,800,400.00'
    assert len(lines) == 2


def test_all_users_export_adds_user_column():
    user = schemas.UserSummary(id="u1", first_name="Tommy", last_name="Vercetti")
    lines = export_sessions_csv([detailed_session(user=user)], include_user=True).split("\n")

    assert lines[0] == "Date,Job Type,User,Duration (min),Earnings,Expenses,Net Profit,Hourly Rate"
    assert lines[1] == '2024-03-05,"Trucking","Tommy Vercetti",120,1000.00,200.00,800,400.00'


def test_user_name_fallbacks():
    nameless = schemas.UserSummary(id="u2")
    first_only = schemas.UserSummary(id="u3", first_name="Carl")
    csv_text = export_sessions_csv(
        [detailed_session(user=None), detailed_session(user=nameless), detailed_session(user=first_only)],
        include_user=True,
    )
    users = [line.split(",")[2] for line in csv_text.split("\n")[1:]]

    assert users == ['"Unknown User"', '"Unknown User"', '"Carl"']


def test_text_fields_are_quoted_and_escaped():
    job_type = schemas.JobType(id=9, name='Fish, "fresh"')
    row = export_sessions_csv([detailed_session(job_type=job_type)]).split("\n")[1]

    assert row.startswith('2024-03-05,"Fish, ""fresh""",')


def test_fractional_and_negative_values():
    row = export_sessions_csv([detailed_session(minutes=45, earnings="10.00", expenses="22.50")]).split("\n")[1]

    # -12.50 net over 0.75h
    assert row.endswith(",45,10.00,22.50,-12.5,-16.67")


def test_zero_duration_hourly_rate_is_zero():
    row = export_sessions_csv([detailed_session(minutes=0, earnings="5.00", expenses="0.00")]).split("\n")[1]

    assert row.endswith(",0,5.00,0.00,5,0")


def test_rows_keep_given_order_without_trailing_newline():
    sessions = [detailed_session(session_id=2, minutes=60), detailed_session(session_id=1, minutes=30)]
    csv_text = export_sessions_csv(sessions)

    assert not csv_text.endswith("\n")
    assert [line.split(",")[2] for line in csv_text.split("\n")[1:]] == ["60", "30"]


def test_empty_export_is_header_only():
    assert export_sessions_csv([]) == (
        "Date,Job Type,Duration (min),Earnings,Expenses,Net Profit,Hourly Rate\n"
    )


def test_missing_timestamp_leaves_date_blank():
    row = export_sessions_csv([detailed_session(created_at=None)]).split("\n")[1]

    assert row.startswith(',"Trucking",')


def test_format_plain():
    assert format_plain(Decimal("800.00")) == "800"
    assert format_plain(Decimal("12.50")) == "12.5"
    assert format_plain(Decimal("0.00")) == "0"
    assert format_plain(Decimal("-0.00")) == "0"
    assert format_plain(Decimal("1E+3")) == "1000"


def test_negative_hourly_rate_tie_rounds_toward_positive():
    # -0.03 net over two hours is -0.015/h
    row = export_sessions_csv([detailed_session(minutes=120, earnings="0.00", expenses="0.03")]).split("\n")[1]

    assert row.endswith(",120,0.00,0.03,-0.03,-0.01")


def test_negative_hourly_rate_rounding_to_zero_has_no_sign():
    # -0.01 net over two hours is -0.005/h
    row = export_sessions_csv([detailed_session(minutes=120, earnings="0.00", expenses="0.01")]).split("\n")[1]

    assert row.endswith(",-0.01,0.00")
