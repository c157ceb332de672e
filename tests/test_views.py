from datetime import date
from decimal import Decimal

from playzone.api import ApiExporter
from playzone.models import PaymentMethod, Session, SessionStatus
from playzone.polling import PollSnapshot
from playzone.settings import DisplaySettings
from playzone.timing import to_epoch_ms
from playzone.views import (
    board_cards,
    dashboard_summary,
    session_counts,
    session_detail,
    session_rows,
)

NOW_MS = to_epoch_ms("2024-05-01 11:50:00")
TODAY = date(2024, 5, 1)


def active(session_id: int, end: str | None, **overrides) -> Session:
    values = dict(
        id=session_id,
        parent_id=session_id,
        status=SessionStatus.ACTIVE,
        start_time="2024-05-01 10:00:00",
        planned_end_time=end,
        parent_name=f"Parent {session_id}",
        children_count=2,
    )
    values.update(overrides)
    return Session(**values)


def completed(session_id: int, **overrides) -> Session:
    values = dict(
        id=session_id,
        parent_id=session_id,
        status=SessionStatus.COMPLETED,
        start_time="2024-05-01 09:00:00",
        end_time="2024-05-01 10:30:00",
        duration_minutes=90,
        parent_name=f"Parent {session_id}",
        children_count=1,
        payment_method=PaymentMethod.CASH,
        normal_price=1800,
        final_price=1800,
    )
    values.update(overrides)
    return Session(**values)


def test_board_cards_sorted_by_planned_end_and_filtered() -> None:
    rows = [
        active(1, "2024-05-01 13:00:00"),
        active(2, "2024-05-01 12:00:00"),
        active(3, None),
        active(4, "garbage"),
        completed(5),
    ]
    cards = board_cards(rows, NOW_MS)
    assert [card.session_id for card in cards] == [2, 1]
    assert cards[0].countdown.state == "warning"
    assert cards[0].countdown.clock == "00:10:00"
    assert cards[1].countdown.state == "running"
    assert cards[0].start_label == "10:00"
    assert cards[0].end_label == "12:00"


def test_board_card_finished_once_planned_end_passes() -> None:
    cards = board_cards([active(1, "2024-05-01 11:00:00")], NOW_MS)
    assert cards[0].countdown.finished
    assert cards[0].as_dict()["clock"] == "00:00:00"
    assert cards[0].as_dict()["state"] == "finished"


def test_session_rows_compute_live_and_persisted_durations() -> None:
    views = session_rows([active(1, "2024-05-01 12:00:00"), completed(2)], NOW_MS)
    assert views[0].duration_text == "1 h 50 min"
    assert views[0].end_label == "-"
    assert views[1].duration_text == "1 h 30 min"
    assert views[1].status == "completed"


def test_session_counts() -> None:
    rows = [
        active(1, "2024-05-01 12:00:00"),
        completed(2),
        completed(3, start_time="2024-04-30 09:00:00", end_time="2024-04-30 10:00:00"),
    ]
    counts = session_counts(rows, TODAY)
    assert counts.active == 1
    assert counts.completed_today == 1
    assert counts.total_today == 2


def test_session_detail_for_active_and_completed() -> None:
    live = session_detail(active(1, "2024-05-01 12:00:00"), NOW_MS)
    assert live.countdown is not None and live.countdown.near_expiry
    assert live.payment_label == "Pending"
    assert live.planned_end_label == "12:00"

    done = session_detail(completed(2, discount_amount=300, final_price=1500), NOW_MS)
    assert done.countdown is None
    assert done.payment_label == "Cash"
    assert done.final_price == "Rs. 1,500"
    assert done.discount_amount == "Rs. 300"


def test_dashboard_summary_totals() -> None:
    rows = [
        active(1, "2024-05-01 12:00:00"),
        completed(2),
        completed(3, discount_amount=1000, final_price=800, children_count=3),
    ]
    summary = dashboard_summary(rows, TODAY, NOW_MS)
    assert summary.active_count == 1
    assert summary.children_inside == 2
    assert summary.visitors_today == 6
    assert summary.discounts_today == 1
    assert summary.takings_today == Decimal("2600.00")
    assert len(summary.completed_today) == 2


def test_board_payload_respects_display_toggles() -> None:
    exporter = ApiExporter()
    cards = board_cards([active(1, "2024-05-01 12:00:00")], NOW_MS)
    payload = exporter.board_snapshot(
        cards,
        now_ms=NOW_MS,
        display=DisplaySettings(show_parent_name=False, show_children_count=False),
    )
    assert payload["server_now_ms"] == NOW_MS
    assert payload["display"]["show_parent_name"] is False
    assert payload["sessions"][0]["parent_name"] == ""
    assert payload["sessions"][0]["children_count"] is None
    assert payload["sessions"][0]["remaining_ms"] == 10 * 60_000


def test_board_payload_from_poll_snapshot_carries_error() -> None:
    exporter = ApiExporter()
    snapshot = PollSnapshot(rows=(active(1, "2024-05-01 12:00:00"),), now_ms=NOW_MS, error="Server down")
    payload = exporter.from_poll(snapshot)
    assert payload["error"] == "Server down"
    assert [item["id"] for item in payload["sessions"]] == [1]
