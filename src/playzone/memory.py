"""In-memory implementation of :class:`~playzone.client.PlayZoneBackend`.

Used as a test double and to run the console without a remote API. All
state lives on the instance; two backends never share rows.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from .client import PlayZoneBackend, clean_session_filter
from .exceptions import NotFoundError, SessionStateError, ValidationError
from .models import (
    Child,
    ChildInput,
    ParentDetail,
    ParentSummary,
    PaymentMethod,
    RewardSummary,
    Session,
    SessionStatus,
)
from .money import to_decimal
from .timing import format_wire_timestamp, parse_timestamp, session_duration_minutes

REWARD_EVERY_MINUTES = 8 * 60


@dataclass(slots=True)
class PricingRules:
    """Simple stand-in for the server's pricing: hourly rate per child."""

    hourly_rate: Decimal = Decimal("1200")
    min_charge_minutes: int = 30
    discount_amount: Decimal = Decimal("1000")

    def price(self, minutes: int, children: int) -> Decimal:
        billable = max(minutes, self.min_charge_minutes)
        hours = Decimal(billable) / Decimal(60)
        return to_decimal(hours * self.hourly_rate * max(children, 1))


@dataclass(slots=True)
class _ParentRecord:
    id: int
    name: str
    phone: str
    created_at: str
    children: List[Child] = field(default_factory=list)
    rewards_used: int = 0


class InMemoryBackend(PlayZoneBackend):
    """Dictionary backed data source with the API's row shapes."""

    def __init__(
        self,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        pricing: Optional[PricingRules] = None,
    ) -> None:
        self._clock: Callable[[], datetime] = clock or datetime.now
        self._pricing = pricing or PricingRules()
        self._parents: Dict[int, _ParentRecord] = {}
        self._sessions: Dict[int, Session] = {}
        self._next_parent_id = 1
        self._next_child_id = 1
        self._next_session_id = 1

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Parents
    # ------------------------------------------------------------------
    def list_parents(self, q: str = "") -> List[ParentSummary]:
        needle = (q or "").strip().lower()
        rows: List[ParentSummary] = []
        for record in sorted(self._parents.values(), key=lambda item: item.name.lower()):
            if needle and needle not in record.name.lower() and needle not in record.phone:
                continue
            rows.append(
                ParentSummary(
                    id=record.id,
                    name=record.name,
                    phone=record.phone,
                    children_count=len(record.children),
                    created_at=record.created_at,
                )
            )
        return rows

    def get_parent(self, parent_id: int) -> ParentDetail:
        record = self._parent_record(parent_id)
        return self._parent_detail(record)

    def create_parent(self, name: str, phone: str, children: Sequence[ChildInput]) -> ParentDetail:
        cleaned_name = (name or "").strip()
        cleaned_phone = (phone or "").strip()
        if not cleaned_name:
            raise ValidationError("Parent name is required")
        if not cleaned_phone:
            raise ValidationError("WhatsApp number is required")
        named = [child for child in children if child.name.strip()]
        if not named:
            raise ValidationError("Add at least one child")
        if any(record.phone == cleaned_phone for record in self._parents.values()):
            raise ValidationError("A parent with this WhatsApp number already exists")
        created_at = format_wire_timestamp(self.now())
        record = _ParentRecord(
            id=self._next_parent_id,
            name=cleaned_name,
            phone=cleaned_phone,
            created_at=created_at,
        )
        self._next_parent_id += 1
        for child in named:
            record.children.append(
                Child(
                    id=self._next_child_id,
                    parent_id=record.id,
                    name=child.name.strip(),
                    age=child.age,
                    created_at=created_at,
                )
            )
            self._next_child_id += 1
        self._parents[record.id] = record
        return self._parent_detail(record)

    def _parent_record(self, parent_id: int) -> _ParentRecord:
        try:
            return self._parents[int(parent_id)]
        except (KeyError, TypeError, ValueError) as exc:
            raise NotFoundError("Parent not found", status=404) from exc

    def _parent_detail(self, record: _ParentRecord) -> ParentDetail:
        now_ms = int(self.now().timestamp() * 1000)
        completed = [
            row
            for row in self._sessions.values()
            if row.parent_id == record.id and row.is_completed
        ]
        total_minutes = sum(session_duration_minutes(row, now_ms) for row in completed)
        earned = total_minutes // REWARD_EVERY_MINUTES
        recent = sorted(
            (row for row in self._sessions.values() if row.parent_id == record.id),
            key=lambda row: row.start_time or "",
            reverse=True,
        )[:5]
        return ParentDetail(
            id=record.id,
            name=record.name,
            phone=record.phone,
            created_at=record.created_at,
            children=tuple(record.children),
            rewards=RewardSummary(
                total_minutes=total_minutes,
                total_sessions=len(completed),
                rewards_earned=earned,
                rewards_available=max(earned - record.rewards_used, 0),
                rewards_used=record.rewards_used,
                next_reward_in_minutes=REWARD_EVERY_MINUTES - (total_minutes % REWARD_EVERY_MINUTES),
            ),
            recent_sessions=tuple(recent),
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def list_sessions(self, status: Optional[str] = None, range: Optional[str] = None) -> List[Session]:
        params = clean_session_filter(status, range)
        wanted_status = params.get("status")
        since = self._range_start(params.get("range"))
        rows: List[Session] = []
        for row in self._sessions.values():
            if wanted_status and row.status.value != wanted_status:
                continue
            if since is not None:
                started = parse_timestamp(row.start_time)
                if started is None or started.date() < since:
                    continue
            rows.append(replace(row))
        rows.sort(key=lambda row: row.start_time or "", reverse=True)
        return rows

    def _range_start(self, range_name: Optional[str]) -> Optional[date]:
        today = self.now().date()
        if range_name == "today":
            return today
        if range_name == "week":
            return today - timedelta(days=today.weekday())
        if range_name == "month":
            return today.replace(day=1)
        return None

    def get_session(self, session_id: int) -> Session:
        return replace(self._session_row(session_id))

    def _session_row(self, session_id: int) -> Session:
        try:
            return self._sessions[int(session_id)]
        except (KeyError, TypeError, ValueError) as exc:
            raise NotFoundError("Session not found", status=404) from exc

    def start_session(
        self,
        parent_id: int,
        child_ids: Sequence[int],
        planned_minutes: int,
        *,
        start_time: Optional[datetime] = None,
    ) -> Session:
        record = self._parent_record(parent_id)
        known = {child.id for child in record.children}
        picked = tuple(int(child_id) for child_id in child_ids)
        if not picked:
            raise ValidationError("Select at least one child.")
        unknown = [child_id for child_id in picked if child_id not in known]
        if unknown:
            raise ValidationError(f"Unknown child id(s): {', '.join(str(c) for c in unknown)}")
        if any(
            row.is_active and set(row.child_ids) & set(picked)
            for row in self._sessions.values()
        ):
            raise SessionStateError("One of these children already has an active session", status=409)
        minutes = int(planned_minutes) if int(planned_minutes) > 0 else 120
        started = start_time or self.now()
        session = Session(
            id=self._next_session_id,
            parent_id=record.id,
            status=SessionStatus.ACTIVE,
            start_time=format_wire_timestamp(started),
            planned_end_time=format_wire_timestamp(started + timedelta(minutes=minutes)),
            parent_name=record.name,
            parent_phone=record.phone,
            children_count=len(picked),
            child_ids=picked,
        )
        self._next_session_id += 1
        self._sessions[session.id] = session
        return replace(session)

    def end_session(
        self,
        session_id: int,
        payment_method: PaymentMethod,
        *,
        apply_discount: bool = False,
    ) -> Session:
        row = self._session_row(session_id)
        if row.is_completed:
            raise SessionStateError("Session already completed", status=409)
        method = PaymentMethod(payment_method)
        ended = self.now()
        started = parse_timestamp(row.start_time) or ended
        minutes = max(math.floor((ended - started).total_seconds() / 60), 0)
        normal = self._pricing.price(minutes, row.children_count)
        discount = min(self._pricing.discount_amount, normal) if apply_discount else Decimal("0")
        if apply_discount:
            record = self._parents.get(row.parent_id)
            if record is not None:
                record.rewards_used += 1
        updated = replace(
            row,
            status=SessionStatus.COMPLETED,
            end_time=format_wire_timestamp(ended),
            duration_minutes=minutes,
            payment_method=method,
            normal_price=normal,
            discount_amount=discount,
            final_price=normal - discount,
        )
        self._sessions[row.id] = updated
        return replace(updated)


__all__ = ["InMemoryBackend", "PricingRules", "REWARD_EVERY_MINUTES"]
