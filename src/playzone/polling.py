"""Tick-and-poll controller that keeps a live countdown in sync with the API.

A :class:`SessionPoller` owns one row collection for one view. It runs two
independent timers on the event loop:

* a fast *tick* that only re-renders (countdowns are recomputed from the rows
  already held and the current clock), and
* a slower *poll* that re-fetches the rows and replaces the whole collection.

Each fetch captures the :class:`LivenessToken` that was current when it
started. :meth:`SessionPoller.stop` revokes that token, so a fetch that
resolves after the view was torn down is dropped without touching state.
Fetches are never aborted at the transport level.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from .exceptions import PlayZoneError
from .models import Session

if TYPE_CHECKING:  # pragma: no cover
    from .client import PlayZoneBackend
    from .ops import HealthMonitor, StructuredLogger

BOARD_POLL_SECONDS = 10.0
LIST_POLL_SECONDS = 30.0
TICK_SECONDS = 1.0

Loader = Callable[[], Awaitable[Sequence[Session]]]


class LivenessToken:
    """Flag shared between a view and the fetches it started."""

    __slots__ = ("_alive",)

    def __init__(self) -> None:
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def revoke(self) -> None:
        self._alive = False


@dataclass(frozen=True, slots=True)
class PollSnapshot:
    """What a view needs to draw one frame."""

    rows: Tuple[Session, ...]
    now_ms: int
    error: Optional[str] = None
    last_success_ms: Optional[int] = None


RenderListener = Callable[[PollSnapshot], None]


def describe_error(exc: BaseException, fallback: str) -> str:
    if isinstance(exc, PlayZoneError) and exc.message:
        return exc.message
    return fallback


class SessionPoller:
    """Keep a row collection fresh while ticking a countdown every second."""

    def __init__(
        self,
        loader: Loader,
        *,
        poll_interval: float = BOARD_POLL_SECONDS,
        tick_interval: float = TICK_SECONDS,
        clock: Callable[[], float] = time.time,
        logger: Optional["StructuredLogger"] = None,
        health: Optional["HealthMonitor"] = None,
        name: str = "sessions",
        error_message: str = "Failed to load sessions",
    ) -> None:
        if poll_interval <= 0 or tick_interval <= 0:
            raise ValueError("Poll and tick intervals must be positive.")
        self._loader = loader
        self.poll_interval = poll_interval
        self.tick_interval = tick_interval
        self._clock = clock
        self._logger = logger
        self._health = health
        self.name = name
        self._error_message = error_message
        self._rows: Tuple[Session, ...] = ()
        self._error: Optional[str] = None
        self._last_success_ms: Optional[int] = None
        self._listeners: List[RenderListener] = []
        self._token: Optional[LivenessToken] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._visible = True
        self._issued = 0
        self._applied = 0

    @classmethod
    def for_backend(
        cls,
        backend: "PlayZoneBackend",
        *,
        status: Optional[str] = None,
        range: Optional[str] = None,
        **kwargs,
    ) -> "SessionPoller":
        """Poll ``backend.list_sessions`` without blocking the event loop."""

        async def load() -> Sequence[Session]:
            return await asyncio.to_thread(backend.list_sessions, status, range)

        return cls(load, **kwargs)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def rows(self) -> Tuple[Session, ...]:
        return self._rows

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def running(self) -> bool:
        return self._token is not None and self._token.alive

    @property
    def pending_fetches(self) -> Tuple[asyncio.Task, ...]:
        return tuple(self._inflight)

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def snapshot(self) -> PollSnapshot:
        return PollSnapshot(
            rows=self._rows,
            now_ms=self.now_ms(),
            error=self._error,
            last_success_ms=self._last_success_ms,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: RenderListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: RenderListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def render(self) -> None:
        """Draw one frame; a failing listener never stops the timers."""

        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                self._log("render_failed", error=str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Fetch immediately, then schedule the tick and poll timers.

        Must be called from a running event loop.
        """

        if self.running:
            return
        self._token = LivenessToken()
        self._visible = True
        self._tick_task = asyncio.create_task(self._tick_loop(), name=f"{self.name}-tick")
        self._poll_task = asyncio.create_task(self._poll_loop(), name=f"{self.name}-poll")

    async def stop(self) -> None:
        """Cancel both timers and orphan any fetch still in flight."""

        if self._token is not None:
            self._token.revoke()
        timers = [task for task in (self._tick_task, self._poll_task) if task is not None]
        self._tick_task = None
        self._poll_task = None
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    async def __aenter__(self) -> "SessionPoller":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def set_visibility(self, visible: bool) -> Optional[asyncio.Task]:
        """Record host visibility; becoming visible again forces a poll."""

        became_visible = visible and not self._visible
        self._visible = visible
        if became_visible and self.running:
            return self._spawn_fetch()
        return None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------
    def _spawn_fetch(self) -> asyncio.Task:
        task = asyncio.create_task(self.refresh(), name=f"{self.name}-fetch")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def refresh(self) -> bool:
        """Fetch once and apply the result if the view is still alive.

        Returns ``True`` when fresh rows were applied.
        """

        token = self._token or LivenessToken()
        self._issued += 1
        sequence = self._issued
        try:
            rows = await self._loader()
        except Exception as exc:
            if not token.alive:
                self._log("poll_discarded", reason="stopped", failed=True)
                return False
            if sequence < self._applied:
                self._log("poll_discarded", reason="superseded", failed=True)
                return False
            message = describe_error(exc, self._error_message)
            self._error = message
            if self._health is not None:
                self._health.record_poll_failure(self.name, message)
            self._log("poll_failed", error=message)
            self.render()
            return False
        if not token.alive:
            self._log("poll_discarded", reason="stopped", rows=len(rows))
            return False
        if sequence < self._applied:
            self._log("poll_discarded", reason="superseded", rows=len(rows))
            return False
        self._applied = sequence
        self._rows = tuple(rows)
        self._error = None
        self._last_success_ms = self.now_ms()
        if self._health is not None:
            self._health.record_poll_success(self.name, len(self._rows))
        self._log("poll_succeeded", rows=len(self._rows))
        self.render()
        return True

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.render()

    async def _poll_loop(self) -> None:
        while True:
            self._spawn_fetch()
            await asyncio.sleep(self.poll_interval)

    def _log(self, event: str, **fields: object) -> None:
        if self._logger is not None:
            self._logger.log(event, poller=self.name, **fields)


__all__ = [
    "BOARD_POLL_SECONDS",
    "LIST_POLL_SECONDS",
    "LivenessToken",
    "PollSnapshot",
    "SessionPoller",
    "TICK_SECONDS",
    "describe_error",
]
