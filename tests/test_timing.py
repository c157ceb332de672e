from datetime import datetime

import pytest

from playzone.models import Session, SessionStatus
from playzone.timing import (
    countdown,
    elapsed_minutes,
    format_clock,
    format_duration,
    format_time_label,
    format_wire_timestamp,
    is_near_expiry,
    parse_timestamp,
    plan_session_end,
    remaining_ms,
    session_duration_minutes,
    to_epoch_ms,
)

MINUTE = 60_000


def test_format_clock_pads_hours_minutes_seconds() -> None:
    assert format_clock(3_661_000) == "01:01:01"
    assert format_clock(59_999) == "00:00:59"
    assert format_clock(0) == "00:00:00"
    assert format_clock(-5_000) == "00:00:00"
    assert format_clock(float("nan")) == "00:00:00"


def test_format_duration_labels() -> None:
    assert format_duration(125) == "2 h 5 min"
    assert format_duration(120) == "2 h"
    assert format_duration(45) == "45 min"
    assert format_duration(0) == "0 min"
    assert format_duration(-3) == "0 min"
    assert format_duration(float("inf")) == "0 min"


def test_remaining_ms_is_clamped_at_zero() -> None:
    assert remaining_ms(1_000, 5_000) == 4_000
    assert remaining_ms(9_000, 5_000) == 0


def test_parse_timestamp_accepts_sql_and_iso_text() -> None:
    assert parse_timestamp("2024-05-01 10:30:00") == datetime(2024, 5, 1, 10, 30)
    assert parse_timestamp("2024-05-01T10:30:00") == datetime(2024, 5, 1, 10, 30)
    assert parse_timestamp("2024-05-01T10:30:00Z").utcoffset().total_seconds() == 0
    assert parse_timestamp("not a time") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_elapsed_minutes_uses_now_for_open_sessions() -> None:
    start = "2024-05-01 10:00:00"
    now_ms = to_epoch_ms("2024-05-01 11:05:30")
    assert elapsed_minutes(start, None, now_ms) == 65
    assert elapsed_minutes(start, "2024-05-01 10:45:00", now_ms) == 45
    assert elapsed_minutes("garbage", None, now_ms) == 0
    assert elapsed_minutes(start, "2024-05-01 09:00:00", now_ms) == 0


def test_completed_session_prefers_persisted_duration() -> None:
    session = Session(
        id=1,
        parent_id=1,
        status=SessionStatus.COMPLETED,
        start_time="2024-05-01 10:00:00",
        end_time="2024-05-01 12:00:00",
        duration_minutes=100,
    )
    assert session_duration_minutes(session, to_epoch_ms("2024-05-01 13:00:00")) == 100


def test_near_expiry_window() -> None:
    end = "2024-05-01 12:00:00"
    end_ms = to_epoch_ms(end)
    assert is_near_expiry(end, end_ms - 10 * MINUTE)
    assert not is_near_expiry(end, end_ms - 20 * MINUTE)
    assert is_near_expiry(end, end_ms - 15 * MINUTE)
    assert is_near_expiry(end, end_ms - 30_000)
    assert not is_near_expiry(end, end_ms)


def test_countdown_reaches_finished_without_refetch() -> None:
    end = "2024-05-01 12:00:00"
    end_ms = to_epoch_ms(end)
    running = countdown(end, end_ms - 2_000)
    assert running.clock == "00:00:02"
    assert running.state == "warning"

    later = countdown(end, end_ms + 1_000)
    assert later.clock == "00:00:00"
    assert later.finished
    assert later.state == "finished"


def test_countdown_without_planned_end_is_finished() -> None:
    result = countdown(None, 0)
    assert result.finished
    assert not result.near_expiry


def test_format_time_label() -> None:
    assert format_time_label("2024-05-01 09:05:00") == "09:05"
    assert format_time_label(None) == "-"
    assert format_time_label("nope") == "-"


@pytest.mark.parametrize(
    "start, expected_end, expected_minutes",
    [
        (datetime(2024, 5, 1, 10, 0), datetime(2024, 5, 1, 12, 0), 120),
        (datetime(2024, 5, 1, 19, 0), datetime(2024, 5, 1, 20, 0), 60),
        (datetime(2024, 5, 1, 20, 30), datetime(2024, 5, 1, 20, 0), 0),
    ],
)
def test_plan_session_end_caps_at_closing(start, expected_end, expected_minutes) -> None:
    end, minutes = plan_session_end(start, default_minutes=120, close_hour=20)
    assert end == expected_end
    assert minutes == expected_minutes


def test_format_wire_timestamp_is_naive_local_text() -> None:
    assert format_wire_timestamp(datetime(2024, 5, 1, 8, 5, 9)) == "2024-05-01 08:05:09"
