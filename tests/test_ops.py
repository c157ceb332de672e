from datetime import datetime

from playzone.ops import HealthMonitor, StructuredLogger


def test_log_entries_carry_utc_offset(tmp_path) -> None:
    logger = StructuredLogger(path=tmp_path / "logs" / "console.jsonl")
    entry = logger.log("session_started", session_id=1)
    assert datetime.fromisoformat(entry["timestamp"]).utcoffset().total_seconds() == 0
    assert '"event": "session_started"' in (tmp_path / "logs" / "console.jsonl").read_text()


def test_health_reports_success_age() -> None:
    health = HealthMonitor()
    health.record_poll_success("board", 3)
    status = health.status()
    assert status["api"] == "ok"
    assert status["pollers"]["board"]["last_success_age_seconds"] == 0
    assert status["pollers"]["board"]["rows"] == 3
