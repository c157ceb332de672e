"""Earnings rows and totals built from completed sessions.

Prices always come from the server; this module only filters and sums.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from .models import PaymentMethod, Session
from .timing import format_duration, parse_timestamp, session_duration_minutes

PERIODS = ("today", "week", "month", "all")
METHOD_FILTERS = ("all",) + tuple(method.value for method in PaymentMethod)


@dataclass(frozen=True, slots=True)
class EarningRow:
    session_id: int
    day: date
    parent_name: str
    duration_text: str
    base_amount: Decimal
    discount: Decimal
    final_amount: Decimal
    method: Optional[PaymentMethod]


@dataclass(frozen=True, slots=True)
class EarningsSummary:
    today_total: Decimal
    month_total: Decimal
    paid_sessions_today: int


def start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""

    return day - timedelta(days=day.weekday())


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def period_start(period: str, today: date) -> Optional[date]:
    if period == "today":
        return today
    if period == "week":
        return start_of_week(today)
    if period == "month":
        return start_of_month(today)
    if period == "all":
        return None
    raise ValueError(f"Unknown period: {period!r}")


def earning_rows(sessions: Iterable[Session], now_ms: int) -> List[EarningRow]:
    rows: List[EarningRow] = []
    for session in sessions:
        if not session.is_completed:
            continue
        moment = parse_timestamp(session.end_time) or parse_timestamp(session.start_time)
        if moment is None:
            continue
        rows.append(
            EarningRow(
                session_id=session.id,
                day=moment.date(),
                parent_name=session.parent_name,
                duration_text=format_duration(session_duration_minutes(session, now_ms)),
                base_amount=session.normal_price,
                discount=session.discount_amount,
                final_amount=session.final_price,
                method=session.payment_method,
            )
        )
    rows.sort(key=lambda row: (row.day, row.session_id), reverse=True)
    return rows


def filter_earnings(
    rows: Sequence[EarningRow],
    *,
    period: str = "today",
    method: str = "all",
    today: date,
) -> List[EarningRow]:
    since = period_start(period, today)
    if method not in METHOD_FILTERS:
        raise ValueError(f"Unknown payment method filter: {method!r}")
    wanted = None if method == "all" else PaymentMethod(method)
    return [
        row
        for row in rows
        if (since is None or row.day >= since) and (wanted is None or row.method is wanted)
    ]


def summarize_earnings(rows: Sequence[EarningRow], today: date) -> EarningsSummary:
    month_start = start_of_month(today)
    todays = [row for row in rows if row.day == today]
    return EarningsSummary(
        today_total=sum((row.final_amount for row in todays), Decimal("0.00")),
        month_total=sum((row.final_amount for row in rows if row.day >= month_start), Decimal("0.00")),
        paid_sessions_today=len(todays),
    )


def total(rows: Iterable[EarningRow]) -> Decimal:
    return sum((row.final_amount for row in rows), Decimal("0.00"))


__all__ = [
    "EarningRow",
    "EarningsSummary",
    "METHOD_FILTERS",
    "PERIODS",
    "earning_rows",
    "filter_earnings",
    "period_start",
    "start_of_month",
    "start_of_week",
    "summarize_earnings",
    "total",
]
