"""View models for the display board, session pages and dashboard.

Views are pure functions of the fetched rows and a ``now_ms`` instant, so
the same rows can be re-rendered every tick without another fetch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Session
from .money import format_currency
from .timing import (
    Countdown,
    countdown,
    format_duration,
    format_time_label,
    parse_timestamp,
    session_duration_minutes,
    to_epoch_ms,
)


@dataclass(frozen=True, slots=True)
class BoardCard:
    """One live countdown on the display board."""

    session_id: int
    parent_name: str
    children_count: int
    start_label: str
    end_label: str
    planned_end_ms: int
    countdown: Countdown

    def as_dict(self) -> dict:
        return {
            "id": self.session_id,
            "parent_name": self.parent_name,
            "children_count": self.children_count,
            "start_label": self.start_label,
            "end_label": self.end_label,
            "planned_end_ms": self.planned_end_ms,
            "remaining_ms": self.countdown.remaining_ms,
            "clock": self.countdown.clock,
            "state": self.countdown.state,
        }


def board_cards(rows: Iterable[Session], now_ms: int) -> List[BoardCard]:
    """Active sessions with a planned end, most urgent first."""

    cards: List[BoardCard] = []
    for row in rows:
        if not row.is_active or not row.planned_end_time:
            continue
        end_ms = to_epoch_ms(row.planned_end_time)
        if end_ms is None:
            continue
        cards.append(
            BoardCard(
                session_id=row.id,
                parent_name=row.parent_name,
                children_count=row.children_count,
                start_label=format_time_label(row.start_time),
                end_label=format_time_label(row.planned_end_time),
                planned_end_ms=end_ms,
                countdown=countdown(row.planned_end_time, now_ms),
            )
        )
    cards.sort(key=lambda card: (card.planned_end_ms, card.session_id))
    return cards


@dataclass(frozen=True, slots=True)
class SessionRowView:
    session_id: int
    parent_name: str
    children_count: int
    start_label: str
    end_label: str
    duration_minutes: int
    duration_text: str
    status: str


def session_rows(rows: Iterable[Session], now_ms: int) -> List[SessionRowView]:
    views: List[SessionRowView] = []
    for row in rows:
        minutes = session_duration_minutes(row, now_ms)
        views.append(
            SessionRowView(
                session_id=row.id,
                parent_name=row.parent_name,
                children_count=row.children_count,
                start_label=format_time_label(row.start_time),
                end_label=format_time_label(row.end_time) if row.end_time else "-",
                duration_minutes=minutes,
                duration_text=format_duration(minutes),
                status=row.status.value,
            )
        )
    return views


@dataclass(frozen=True, slots=True)
class SessionCounts:
    active: int
    completed_today: int
    total_today: int


def _started_on(row: Session, day: date) -> bool:
    started = parse_timestamp(row.start_time)
    return started is not None and started.date() == day


def session_counts(rows: Sequence[Session], today: date) -> SessionCounts:
    todays = [row for row in rows if _started_on(row, today)]
    return SessionCounts(
        active=sum(1 for row in rows if row.is_active),
        completed_today=sum(1 for row in todays if row.is_completed),
        total_today=len(todays),
    )


@dataclass(frozen=True, slots=True)
class SessionDetailView:
    """Derived fields for the session detail page."""

    start_label: str
    end_label: str
    planned_end_label: str
    duration_minutes: int
    duration_text: str
    payment_label: str
    normal_price: str
    discount_amount: str
    final_price: str
    countdown: Optional[Countdown]


def payment_label(row: Session) -> str:
    if row.payment_method is None:
        return "Pending"
    return row.payment_method.label


def session_detail(row: Session, now_ms: int) -> SessionDetailView:
    minutes = session_duration_minutes(row, now_ms)
    return SessionDetailView(
        start_label=format_time_label(row.start_time),
        end_label=format_time_label(row.end_time) if row.end_time else "-",
        planned_end_label=format_time_label(row.planned_end_time) if row.planned_end_time else "-",
        duration_minutes=minutes,
        duration_text=format_duration(minutes),
        payment_label=payment_label(row),
        normal_price=format_currency(row.normal_price),
        discount_amount=format_currency(row.discount_amount),
        final_price=format_currency(row.final_price),
        countdown=countdown(row.planned_end_time, now_ms) if row.is_active and row.planned_end_time else None,
    )


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    active_cards: Tuple[BoardCard, ...]
    children_inside: int
    completed_today: Tuple[SessionRowView, ...]
    visitors_today: int
    discounts_today: int
    takings_today: Decimal

    @property
    def active_count(self) -> int:
        return len(self.active_cards)


def dashboard_summary(rows: Sequence[Session], today: date, now_ms: int) -> DashboardSummary:
    cards = board_cards(rows, now_ms)
    active_children = sum(row.children_count for row in rows if row.is_active)
    completed = [row for row in rows if row.is_completed and _started_on(row, today)]
    return DashboardSummary(
        active_cards=tuple(cards),
        children_inside=active_children,
        completed_today=tuple(session_rows(completed, now_ms)),
        visitors_today=active_children + sum(row.children_count for row in completed),
        discounts_today=sum(1 for row in completed if row.discount_amount > 0),
        takings_today=sum((row.final_price for row in completed), Decimal("0.00")),
    )


__all__ = [
    "BoardCard",
    "DashboardSummary",
    "SessionCounts",
    "SessionDetailView",
    "SessionRowView",
    "board_cards",
    "dashboard_summary",
    "payment_label",
    "session_counts",
    "session_detail",
    "session_rows",
]
