from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from playzone.exceptions import NotFoundError, SessionStateError, ValidationError
from playzone.memory import InMemoryBackend, PricingRules
from playzone.models import ChildInput, PaymentMethod, SessionStatus


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 10, 0))


@pytest.fixture()
def backend(clock) -> InMemoryBackend:
    return InMemoryBackend(clock=clock)


def register(backend: InMemoryBackend, name: str = "Ayesha", phone: str = "0300", kids=("Zara", "Ali")):
    return backend.create_parent(name, phone, [ChildInput(kid) for kid in kids])


def test_create_parent_validates_required_fields(backend) -> None:
    with pytest.raises(ValidationError, match="Parent name is required"):
        backend.create_parent(" ", "0300", [ChildInput("Zara")])
    with pytest.raises(ValidationError, match="WhatsApp number is required"):
        backend.create_parent("Ayesha", "", [ChildInput("Zara")])
    with pytest.raises(ValidationError, match="Add at least one child"):
        backend.create_parent("Ayesha", "0300", [ChildInput("  ")])


def test_duplicate_phone_is_rejected(backend) -> None:
    register(backend)
    with pytest.raises(ValidationError):
        register(backend, name="Someone else")


def test_list_parents_searches_name_and_phone(backend) -> None:
    register(backend, "Ayesha Khan", "0300-111")
    register(backend, "Bilal Ahmed", "0311-222")
    assert [parent.name for parent in backend.list_parents("bil")] == ["Bilal Ahmed"]
    assert [parent.name for parent in backend.list_parents("0300")] == ["Ayesha Khan"]
    assert len(backend.list_parents()) == 2


def test_unknown_ids_raise_not_found(backend) -> None:
    with pytest.raises(NotFoundError):
        backend.get_parent(99)
    with pytest.raises(NotFoundError):
        backend.get_session(99)


def test_start_session_assigns_planned_end(backend) -> None:
    parent = register(backend)
    session = backend.start_session(parent.id, [child.id for child in parent.children], 90)
    assert session.status is SessionStatus.ACTIVE
    assert session.start_time == "2024-05-01 10:00:00"
    assert session.planned_end_time == "2024-05-01 11:30:00"
    assert session.children_count == 2
    assert session.parent_name == "Ayesha"


def test_child_cannot_join_two_active_sessions(backend) -> None:
    parent = register(backend)
    first_child = parent.children[0].id
    backend.start_session(parent.id, [first_child], 120)
    with pytest.raises(SessionStateError):
        backend.start_session(parent.id, [first_child], 120)


def test_end_session_prices_and_completes_once(backend, clock) -> None:
    parent = register(backend)
    session = backend.start_session(parent.id, [child.id for child in parent.children], 120)
    clock.advance(minutes=40)

    ended = backend.end_session(session.id, PaymentMethod.CASH)
    assert ended.status is SessionStatus.COMPLETED
    assert ended.duration_minutes == 40
    assert ended.end_time == "2024-05-01 10:40:00"
    assert ended.normal_price == Decimal("1600.00")
    assert ended.final_price == Decimal("1600.00")
    assert ended.payment_method is PaymentMethod.CASH

    with pytest.raises(SessionStateError, match="already completed"):
        backend.end_session(session.id, PaymentMethod.CASH)


def test_minimum_charge_and_discount(clock) -> None:
    backend = InMemoryBackend(clock=clock, pricing=PricingRules(discount_amount=Decimal("500")))
    parent = register(backend, kids=("Zara",))
    session = backend.start_session(parent.id, [parent.children[0].id], 120)
    clock.advance(minutes=10)

    ended = backend.end_session(session.id, PaymentMethod.BANK_TRANSFER, apply_discount=True)
    assert ended.normal_price == Decimal("600.00")
    assert ended.discount_amount == Decimal("500.00")
    assert ended.final_price == Decimal("100.00")
    assert backend.get_parent(parent.id).rewards.rewards_used == 1


def test_list_sessions_filters_and_returns_copies(backend, clock) -> None:
    parent = register(backend)
    zara, ali = (child.id for child in parent.children)
    old = backend.start_session(parent.id, [zara], 120, start_time=clock.now - timedelta(days=40))
    backend.end_session(old.id, PaymentMethod.CASH)
    current = backend.start_session(parent.id, [ali], 120)

    today = backend.list_sessions(range="today")
    assert [row.id for row in today] == [current.id]
    assert [row.id for row in backend.list_sessions(status="completed")] == [old.id]
    assert {row.id for row in backend.list_sessions(status="all", range="all")} == {old.id, current.id}

    today[0].parent_name = "mutated"
    assert backend.get_session(current.id).parent_name == "Ayesha"


def test_parent_rewards_accumulate_completed_minutes(backend, clock) -> None:
    parent = register(backend, kids=("Zara",))
    session = backend.start_session(parent.id, [parent.children[0].id], 120)
    clock.advance(minutes=100)
    backend.end_session(session.id, PaymentMethod.CASH)

    detail = backend.get_parent(parent.id)
    assert detail.rewards.total_minutes == 100
    assert detail.rewards.total_sessions == 1
    assert detail.rewards.rewards_earned == 0
    assert detail.rewards.next_reward_in_minutes == 380
    assert detail.recent_sessions[0].id == session.id
