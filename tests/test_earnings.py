from datetime import date
from decimal import Decimal

import pytest

from playzone.earnings import (
    earning_rows,
    filter_earnings,
    period_start,
    start_of_week,
    summarize_earnings,
    total,
)
from playzone.models import PaymentMethod, Session, SessionStatus
from playzone.timing import to_epoch_ms

TODAY = date(2024, 5, 15)
NOW_MS = to_epoch_ms("2024-05-15 18:00:00")


def paid(session_id: int, ended: str, amount, method=PaymentMethod.CASH, discount=0) -> Session:
    return Session(
        id=session_id,
        parent_id=1,
        status=SessionStatus.COMPLETED,
        start_time=ended,
        end_time=ended,
        duration_minutes=60,
        parent_name="Ayesha",
        children_count=1,
        payment_method=method,
        normal_price=Decimal(amount) + Decimal(discount),
        discount_amount=discount,
        final_price=amount,
    )


@pytest.fixture()
def rows():
    sessions = [
        paid(1, "2024-05-15 10:00:00", 1200),
        paid(2, "2024-05-15 12:00:00", 600, PaymentMethod.BANK_TRANSFER, discount=1000),
        paid(3, "2024-05-13 12:00:00", 2400),
        paid(4, "2024-05-02 12:00:00", 1800, PaymentMethod.BANK_TRANSFER),
        paid(5, "2024-04-28 12:00:00", 900),
        Session(id=6, parent_id=1, status=SessionStatus.ACTIVE, start_time="2024-05-15 17:00:00"),
    ]
    return earning_rows(sessions, NOW_MS)


def test_only_completed_sessions_become_rows(rows) -> None:
    assert [row.session_id for row in rows] == [2, 1, 3, 4, 5]
    assert rows[0].discount == Decimal("1000.00")
    assert rows[0].duration_text == "1 h"


def test_week_starts_on_monday() -> None:
    assert start_of_week(TODAY) == date(2024, 5, 13)
    assert period_start("month", TODAY) == date(2024, 5, 1)
    assert period_start("all", TODAY) is None
    with pytest.raises(ValueError):
        period_start("decade", TODAY)


@pytest.mark.parametrize(
    "period, method, expected",
    [
        ("today", "all", [2, 1]),
        ("week", "all", [2, 1, 3]),
        ("month", "cash", [1, 3]),
        ("month", "bank_transfer", [2, 4]),
        ("all", "all", [2, 1, 3, 4, 5]),
    ],
)
def test_filters(rows, period, method, expected) -> None:
    filtered = filter_earnings(rows, period=period, method=method, today=TODAY)
    assert [row.session_id for row in filtered] == expected


def test_unknown_method_filter_is_rejected(rows) -> None:
    with pytest.raises(ValueError):
        filter_earnings(rows, method="cheque", today=TODAY)


def test_summary_totals(rows) -> None:
    summary = summarize_earnings(rows, TODAY)
    assert summary.today_total == Decimal("1800.00")
    assert summary.month_total == Decimal("6000.00")
    assert summary.paid_sessions_today == 2
    assert total(rows) == Decimal("6900.00")
