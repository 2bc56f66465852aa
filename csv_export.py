"""CSV serialization of job sessions.

Rows come out in the order they are given (storage listings are newest
first). Text columns are always quoted, numeric columns never are.
"""
from decimal import Decimal
from typing import Iterable, List

import schemas
from logic import hourly_rate, net_profit, round_half_up

CSV_MEDIA_TYPE = "text/csv"
CSV_FILENAME = "fivem-job-sessions.csv"

USER_HEADER = ["Date", "Job Type", "Duration (min)", "Earnings", "Expenses", "Net Profit", "Hourly Rate"]
ALL_USERS_HEADER = ["Date", "Job Type", "User", "Duration (min)", "Earnings", "Expenses", "Net Profit", "Hourly Rate"]

UNKNOWN_USER = "Unknown User"


def quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def format_plain(value: Decimal) -> str:
    """Render without exponent or trailing zeros: 800.00 -> "800", 12.50 -> "12.5"."""
    text = format(Decimal(value), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def format_money(value: Decimal) -> str:
    rounded = round_half_up(Decimal(value), "0.01")
    if rounded.is_zero():
        rounded = rounded.copy_abs()
    return format(rounded, "f")


def format_hourly_rate(session) -> str:
    if session.duration_minutes <= 0:
        return "0"
    return format_money(hourly_rate(session))


def format_date(session) -> str:
    if session.created_at is None:
        return ""
    return session.created_at.date().isoformat()


def display_name(user) -> str:
    if user is None:
        return UNKNOWN_USER
    name = " ".join(part for part in (user.first_name, user.last_name) if part).strip()
    return name or UNKNOWN_USER


def _row(session: schemas.JobSessionWithDetails, include_user: bool) -> str:
    fields: List[str] = [format_date(session), quote(session.job_type.name)]
    if include_user:
        fields.append(quote(display_name(session.user)))
    fields += [
        str(session.duration_minutes),
        format_money(session.earnings),
        format_money(session.expenses),
        format_plain(net_profit(session)),
        format_hourly_rate(session),
    ]
    return ",".join(fields)


def export_sessions_csv(
    sessions: Iterable[schemas.JobSessionWithDetails], include_user: bool = False
) -> str:
    """Serialize sessions to CSV text.

    ``include_user`` selects the all-users layout, which adds a ``User``
    column right after ``Job Type``.
    """
    header = ",".join(ALL_USERS_HEADER if include_user else USER_HEADER)
    rows = [_row(session, include_user) for session in sessions]
    return header + "\n" + "\n".join(rows)
