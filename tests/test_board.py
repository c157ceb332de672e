import io

from playzone.board import build_parser, main, render_board
from playzone.models import Session, SessionStatus
from playzone.polling import PollSnapshot
from playzone.timing import to_epoch_ms

NOW_MS = to_epoch_ms("2024-05-01 11:50:00")


def active(session_id: int, name: str, end: str, children: int = 1) -> Session:
    return Session(
        id=session_id,
        parent_id=session_id,
        status=SessionStatus.ACTIVE,
        start_time="2024-05-01 10:00:00",
        planned_end_time=end,
        parent_name=name,
        children_count=children,
    )


def test_render_board_orders_and_marks_sessions() -> None:
    snapshot = PollSnapshot(
        rows=(
            active(1, "Ayesha", "2024-05-01 13:00:00", children=2),
            active(2, "Bilal", "2024-05-01 12:00:00"),
            active(3, "Sana", "2024-05-01 11:30:00"),
        ),
        now_ms=NOW_MS,
    )
    lines = render_board(snapshot, color=False).splitlines()
    assert lines[0].startswith("Live Sessions  11:50:00")
    assert lines[1].startswith("00:00:00  Sana") and lines[1].endswith("finished")
    assert lines[2].startswith("00:10:00  Bilal")
    assert lines[3].startswith("01:10:00  Ayesha")
    assert "2 children" in lines[3]


def test_render_board_shows_error_and_keeps_rows() -> None:
    snapshot = PollSnapshot(
        rows=(active(1, "Ayesha", "2024-05-01 13:00:00"),),
        now_ms=NOW_MS,
        error="Server down",
    )
    frame = render_board(snapshot, color=True)
    assert "\x1b[31m! Server down" in frame
    assert "Ayesha" in frame


def test_render_board_empty() -> None:
    frame = render_board(PollSnapshot(rows=(), now_ms=NOW_MS), color=False)
    assert "No active sessions at the moment." in frame


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])
    assert args.interval == 10.0
    assert args.tick == 1.0
    assert not args.once and not args.demo


def test_demo_once_prints_single_frame() -> None:
    out = io.StringIO()
    assert main(["--demo", "--once", "--no-color"], stream=out) == 0
    text = out.getvalue()
    assert text.startswith("Live Sessions")
    assert "\x1b[" not in text
