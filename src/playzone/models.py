"""Domain models used by the PlayZone console.

Rows are transient copies of what the remote API returns. ``from_api``
constructors accept the loosely typed JSON (ids and counts may arrive as
strings) and normalise it once so views never have to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .money import to_decimal


class SessionStatus(str, Enum):
    """Lifecycle of a play session. ``COMPLETED`` is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"


class PaymentMethod(str, Enum):
    """Payment methods accepted at the front desk."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"

    @property
    def label(self) -> str:
        return "Cash" if self is PaymentMethod.CASH else "Bank transfer"


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_status(value: Any) -> SessionStatus:
    try:
        return SessionStatus(str(value).strip().lower())
    except ValueError:
        return SessionStatus.ACTIVE


def parse_payment_method(value: Any) -> Optional[PaymentMethod]:
    if value is None or value == "":
        return None
    try:
        return PaymentMethod(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(slots=True)
class Session:
    """A timed play visit by one parent and one or more children."""

    id: int
    parent_id: int
    status: SessionStatus
    start_time: Optional[str]
    planned_end_time: Optional[str] = None
    end_time: Optional[str] = None
    parent_name: str = ""
    parent_phone: str = ""
    children_count: int = 0
    duration_minutes: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    normal_price: Decimal = Decimal("0.00")
    discount_amount: Decimal = Decimal("0.00")
    final_price: Decimal = Decimal("0.00")
    child_ids: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "normal_price", to_decimal(self.normal_price))
        object.__setattr__(self, "discount_amount", to_decimal(self.discount_amount))
        object.__setattr__(self, "final_price", to_decimal(self.final_price))

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Session":
        child_ids = tuple(
            _as_int(child_id) for child_id in (payload.get("child_ids") or ()) if child_id is not None
        )
        children_count = _as_int(payload.get("children_count"), default=len(child_ids))
        return cls(
            id=_as_int(payload.get("id")),
            parent_id=_as_int(payload.get("parent_id")),
            status=parse_status(payload.get("status")),
            start_time=_as_optional_str(payload.get("start_time")),
            planned_end_time=_as_optional_str(payload.get("planned_end_time")),
            end_time=_as_optional_str(payload.get("end_time")),
            parent_name=str(payload.get("parent_name") or ""),
            parent_phone=str(payload.get("parent_phone") or ""),
            children_count=children_count,
            duration_minutes=_as_optional_int(payload.get("duration_minutes")),
            payment_method=parse_payment_method(payload.get("payment_method")),
            normal_price=payload.get("normal_price"),
            discount_amount=payload.get("discount_amount"),
            final_price=payload.get("final_price"),
            child_ids=child_ids,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "parent_name": self.parent_name,
            "parent_phone": self.parent_phone,
            "status": self.status.value,
            "start_time": self.start_time,
            "planned_end_time": self.planned_end_time,
            "end_time": self.end_time,
            "children_count": self.children_count,
            "duration_minutes": self.duration_minutes,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "normal_price": float(self.normal_price),
            "discount_amount": float(self.discount_amount),
            "final_price": float(self.final_price),
            "child_ids": list(self.child_ids),
        }


@dataclass(slots=True)
class Child:
    """A registered child belonging to a parent."""

    id: int
    parent_id: int
    name: str
    age: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Child":
        return cls(
            id=_as_int(payload.get("id")),
            parent_id=_as_int(payload.get("parent_id")),
            name=str(payload.get("name") or ""),
            age=_as_optional_int(payload.get("age")),
            created_at=_as_optional_str(payload.get("created_at")),
        )


@dataclass(slots=True)
class ParentSummary:
    """Row of the parents list and of the start-session search."""

    id: int
    name: str
    phone: str
    children_count: int = 0
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "ParentSummary":
        return cls(
            id=_as_int(payload.get("id")),
            name=str(payload.get("name") or ""),
            phone=str(payload.get("phone") or ""),
            children_count=_as_int(payload.get("children_count")),
            created_at=_as_optional_str(payload.get("created_at")),
        )


@dataclass(slots=True)
class RewardSummary:
    """Server-computed loyalty metrics for a parent.

    Every field is optional: older API revisions do not send them and the
    console never computes its own figures.
    """

    total_minutes: Optional[int] = None
    total_sessions: Optional[int] = None
    rewards_earned: Optional[int] = None
    rewards_available: Optional[int] = None
    rewards_used: Optional[int] = None
    next_reward_in_minutes: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.total_minutes,
                self.total_sessions,
                self.rewards_earned,
                self.rewards_available,
                self.rewards_used,
                self.next_reward_in_minutes,
            )
        )

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "RewardSummary":
        source: Mapping[str, Any] = payload.get("metrics") or payload
        return cls(
            total_minutes=_as_optional_int(source.get("total_minutes")),
            total_sessions=_as_optional_int(source.get("total_sessions")),
            rewards_earned=_as_optional_int(source.get("rewards_earned")),
            rewards_available=_as_optional_int(source.get("rewards_available")),
            rewards_used=_as_optional_int(source.get("rewards_used")),
            next_reward_in_minutes=_as_optional_int(source.get("next_reward_in_minutes")),
        )


@dataclass(slots=True)
class ParentDetail:
    """Parent profile with nested children and optional aggregates."""

    id: int
    name: str
    phone: str
    created_at: Optional[str] = None
    children: Tuple[Child, ...] = ()
    rewards: RewardSummary = field(default_factory=RewardSummary)
    recent_sessions: Tuple[Session, ...] = ()

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "ParentDetail":
        return cls(
            id=_as_int(payload.get("id")),
            name=str(payload.get("name") or ""),
            phone=str(payload.get("phone") or ""),
            created_at=_as_optional_str(payload.get("created_at")),
            children=tuple(Child.from_api(child) for child in payload.get("children") or ()),
            rewards=RewardSummary.from_api(payload),
            recent_sessions=tuple(
                Session.from_api(row) for row in payload.get("recent_sessions") or ()
            ),
        )


@dataclass(slots=True)
class ChildInput:
    """A child entered on the registration form."""

    name: str
    age: Optional[int] = None

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if self.age is not None:
            payload["age"] = self.age
        return payload


__all__ = [
    "Child",
    "ChildInput",
    "ParentDetail",
    "ParentSummary",
    "PaymentMethod",
    "RewardSummary",
    "Session",
    "SessionStatus",
    "parse_payment_method",
    "parse_status",
]
