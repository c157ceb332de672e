"""Terminal rendition of the live display board.

``playzone-board`` polls active sessions and redraws the countdowns every
tick, the same way the browser board does.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, TextIO

from .client import ApiClient, PlayZoneBackend
from .memory import InMemoryBackend
from .models import ChildInput
from .ops import HealthMonitor, StructuredLogger
from .polling import BOARD_POLL_SECONDS, TICK_SECONDS, PollSnapshot, SessionPoller
from .views import board_cards

CLEAR_SCREEN = "\x1b[2J\x1b[H"
RED = "\x1b[31m"
DIM = "\x1b[2m"
RESET = "\x1b[0m"


def render_board(snapshot: PollSnapshot, *, title: str = "Live Sessions", color: bool = True) -> str:
    """Plain-text frame for ``snapshot``; countdowns are computed at ``snapshot.now_ms``."""

    def paint(text: str, code: str) -> str:
        return f"{code}{text}{RESET}" if color else text

    clock = datetime.fromtimestamp(snapshot.now_ms / 1000).strftime("%H:%M:%S")
    lines: List[str] = [f"{title}  {clock}"]
    if snapshot.error:
        lines.append(paint(f"! {snapshot.error}", RED))
    cards = board_cards(snapshot.rows, snapshot.now_ms)
    if not cards:
        lines.append("No active sessions at the moment.")
    for card in cards:
        children = f"{card.children_count} child" if card.children_count == 1 else f"{card.children_count} children"
        line = f"{card.countdown.clock}  {card.parent_name:<24} {children:<12} {card.start_label} -> {card.end_label}"
        if card.countdown.finished:
            line = paint(line + "  finished", DIM)
        elif card.countdown.near_expiry:
            line = paint(line, RED)
        lines.append(line)
    return "\n".join(lines)


def seed_demo(backend: InMemoryBackend) -> None:
    """Register a few families with sessions at different stages."""

    now = backend.now()
    demo = (
        ("Ayesha Khan", "0300-1111111", ("Zara", "Ali"), 95),
        ("Bilal Ahmed", "0300-2222222", ("Hamza",), 10),
        ("Sana Malik", "0300-3333333", ("Inaya", "Musa", "Eman"), 50),
    )
    for name, phone, kids, minutes_left in demo:
        parent = backend.create_parent(name, phone, [ChildInput(name=kid) for kid in kids])
        started = now - timedelta(minutes=120 - minutes_left)
        backend.start_session(parent.id, [child.id for child in parent.children], 120, start_time=started)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="playzone-board", description="Live session countdowns in the terminal.")
    parser.add_argument("--api-url", default=None, help="PlayZone API base URL (defaults to PLAYZONE_API_URL)")
    parser.add_argument("--interval", type=float, default=BOARD_POLL_SECONDS, help="seconds between polls")
    parser.add_argument("--tick", type=float, default=TICK_SECONDS, help="seconds between redraws")
    parser.add_argument("--once", action="store_true", help="fetch once, print a single frame and exit")
    parser.add_argument("--demo", action="store_true", help="use an in-memory backend with sample sessions")
    parser.add_argument("--no-color", action="store_true", help="disable ANSI colours")
    return parser


def build_backend(args: argparse.Namespace) -> PlayZoneBackend:
    if args.demo:
        backend = InMemoryBackend()
        seed_demo(backend)
        return backend
    if args.api_url:
        return ApiClient(args.api_url)
    from .webapp.config import API_BASE_URL, API_TIMEOUT

    return ApiClient(API_BASE_URL, timeout=API_TIMEOUT)


async def run_board(
    poller: SessionPoller,
    *,
    stream: TextIO,
    once: bool = False,
    color: bool = True,
) -> int:
    if once:
        await poller.refresh()
        stream.write(render_board(poller.snapshot(), color=color) + "\n")
        stream.flush()
        return 1 if poller.error and not poller.rows else 0

    def draw(snapshot: PollSnapshot) -> None:
        stream.write(CLEAR_SCREEN + render_board(snapshot, color=color) + "\n")
        stream.flush()

    poller.subscribe(draw)
    try:
        async with poller:
            await asyncio.Event().wait()
    finally:
        poller.unsubscribe(draw)
    return 0


def main(argv: Optional[Sequence[str]] = None, *, stream: Optional[TextIO] = None) -> int:
    args = build_parser().parse_args(argv)
    out = stream or sys.stdout
    logger = StructuredLogger()
    poller = SessionPoller.for_backend(
        build_backend(args),
        status="active",
        range="today",
        poll_interval=args.interval,
        tick_interval=args.tick,
        logger=logger,
        health=HealthMonitor(),
        name="board",
    )
    try:
        return asyncio.run(run_board(poller, stream=out, once=args.once, color=not args.no_color))
    except KeyboardInterrupt:
        return 0


__all__ = ["build_parser", "main", "render_board", "run_board", "seed_demo"]


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
