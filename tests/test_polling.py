import asyncio
from datetime import datetime

import pytest

from playzone.exceptions import PlayZoneError
from playzone.memory import InMemoryBackend
from playzone.models import ChildInput, Session, SessionStatus
from playzone.ops import HealthMonitor, StructuredLogger
from playzone.polling import LivenessToken, SessionPoller, describe_error


def row(session_id: int) -> Session:
    return Session(
        id=session_id,
        parent_id=1,
        status=SessionStatus.ACTIVE,
        start_time="2024-05-01 10:00:00",
        planned_end_time="2024-05-01 12:00:00",
        parent_name=f"Parent {session_id}",
        children_count=1,
    )


class ScriptedLoader:
    """Loader that replays results in order, repeating the last one, and counts calls."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if not self.outcomes:
            return []
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, asyncio.Future):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def wait_for_calls(loader: ScriptedLoader, count: int) -> None:
    async def _wait() -> None:
        while loader.calls < count:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait(), timeout=2)


def test_intervals_must_be_positive() -> None:
    async def loader():
        return []

    with pytest.raises(ValueError):
        SessionPoller(loader, poll_interval=0)


def test_liveness_token_revoke() -> None:
    token = LivenessToken()
    assert token.alive
    token.revoke()
    assert not token.alive


def test_describe_error_prefers_server_text() -> None:
    assert describe_error(PlayZoneError("Server down"), "Failed") == "Server down"
    assert describe_error(PlayZoneError(""), "Failed") == "Failed"
    assert describe_error(RuntimeError("boom"), "Failed") == "Failed"


def test_failed_poll_keeps_rows_and_sets_error() -> None:
    async def scenario() -> None:
        loader = ScriptedLoader([row(1)], PlayZoneError("Server down"), [row(2)])
        health = HealthMonitor()
        logger = StructuredLogger()
        poller = SessionPoller(loader, logger=logger, health=health, name="board")

        assert await poller.refresh()
        assert not await poller.refresh()
        assert [item.id for item in poller.rows] == [1]
        assert poller.error == "Server down"
        assert health.status()["pollers"]["board"]["consecutive_failures"] == 1

        assert await poller.refresh()
        assert [item.id for item in poller.rows] == [2]
        assert poller.error is None
        assert [entry["event"] for entry in logger.tail()] == ["poll_succeeded", "poll_failed", "poll_succeeded"]

    asyncio.run(scenario())


def test_unexpected_exception_uses_generic_message() -> None:
    async def scenario() -> None:
        poller = SessionPoller(ScriptedLoader(RuntimeError("socket closed")))
        assert not await poller.refresh()
        assert poller.error == "Failed to load sessions"

    asyncio.run(scenario())


def test_next_poll_still_fires_after_failure() -> None:
    async def scenario() -> None:
        loader = ScriptedLoader(PlayZoneError("Server down"), [row(3)])
        poller = SessionPoller(loader, poll_interval=0.01, tick_interval=10)
        async with poller:
            await wait_for_calls(loader, 2)
            for task in poller.pending_fetches:
                await task
        assert [item.id for item in poller.rows] == [3]
        assert poller.error is None

    asyncio.run(scenario())


def test_poll_replaces_rows_instead_of_merging() -> None:
    async def scenario() -> None:
        poller = SessionPoller(ScriptedLoader([row(1), row(2)], [row(2)]))
        await poller.refresh()
        await poller.refresh()
        assert [item.id for item in poller.rows] == [2]

    asyncio.run(scenario())


def test_stop_discards_in_flight_fetch_without_render() -> None:
    async def scenario() -> None:
        gate = asyncio.get_running_loop().create_future()
        loader = ScriptedLoader(gate)
        logger = StructuredLogger()
        poller = SessionPoller(loader, poll_interval=60, tick_interval=60, logger=logger)
        frames = []
        poller.subscribe(frames.append)

        poller.start()
        await wait_for_calls(loader, 1)
        pending = poller.pending_fetches
        assert len(pending) == 1

        await poller.stop()
        assert not poller.running
        gate.set_result([row(1)])
        assert await pending[0] is False

        assert poller.rows == ()
        assert frames == []
        assert logger.events("poll_discarded")[0]["reason"] == "stopped"

    asyncio.run(scenario())


def test_stop_discards_late_failure_too() -> None:
    async def scenario() -> None:
        gate = asyncio.get_running_loop().create_future()
        loader = ScriptedLoader(gate)
        poller = SessionPoller(loader, poll_interval=60, tick_interval=60)
        poller.start()
        await wait_for_calls(loader, 1)
        pending = poller.pending_fetches
        await poller.stop()
        gate.set_result(PlayZoneError("late"))
        assert await pending[0] is False
        assert poller.error is None

    asyncio.run(scenario())


def test_superseded_result_is_dropped() -> None:
    async def scenario() -> None:
        loop = asyncio.get_running_loop()
        slow, fast = loop.create_future(), loop.create_future()
        poller = SessionPoller(ScriptedLoader(slow, fast))

        first = asyncio.create_task(poller.refresh())
        second = asyncio.create_task(poller.refresh())
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        fast.set_result([row(2)])
        assert await second
        slow.set_result([row(1)])
        assert not await first
        assert [item.id for item in poller.rows] == [2]

    asyncio.run(scenario())


def test_superseded_failure_does_not_flag_fresh_rows() -> None:
    async def scenario() -> None:
        loop = asyncio.get_running_loop()
        slow, fast = loop.create_future(), loop.create_future()
        health = HealthMonitor()
        logger = StructuredLogger()
        poller = SessionPoller(ScriptedLoader(slow, fast), logger=logger, health=health, name="board")
        frames = []
        poller.subscribe(frames.append)

        first = asyncio.create_task(poller.refresh())
        second = asyncio.create_task(poller.refresh())
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        fast.set_result([row(2)])
        assert await second
        slow.set_result(PlayZoneError("Server down"))
        assert not await first

        assert [item.id for item in poller.rows] == [2]
        assert poller.error is None
        assert len(frames) == 1
        assert health.status()["pollers"]["board"]["consecutive_failures"] == 0
        discarded = logger.events("poll_discarded")[0]
        assert discarded["reason"] == "superseded" and discarded["failed"] is True

    asyncio.run(scenario())


def test_failing_listener_does_not_stop_ticks() -> None:
    async def scenario() -> None:
        logger = StructuredLogger()
        poller = SessionPoller(
            ScriptedLoader([row(1)]), poll_interval=60, tick_interval=0.01, logger=logger
        )
        frames = []

        def flaky(snapshot) -> None:
            frames.append(snapshot)
            if len(frames) == 2:
                raise OSError("broken pipe")

        poller.subscribe(flaky)
        async with poller:
            await asyncio.sleep(0.1)
        assert len(frames) > 3
        assert logger.events("render_failed")[0]["error"] == "broken pipe"

    asyncio.run(scenario())


def test_becoming_visible_forces_a_fetch() -> None:
    async def scenario() -> None:
        loader = ScriptedLoader([row(1)], [row(2)])
        poller = SessionPoller(loader, poll_interval=60, tick_interval=60)
        async with poller:
            await wait_for_calls(loader, 1)
            assert poller.set_visibility(False) is None
            task = poller.set_visibility(True)
            assert task is not None
            await task
            assert loader.calls == 2
            assert poller.set_visibility(True) is None
        assert [item.id for item in poller.rows] == [2]

    asyncio.run(scenario())


def test_tick_renders_without_fetching() -> None:
    async def scenario() -> None:
        loader = ScriptedLoader([row(1)])
        poller = SessionPoller(loader, poll_interval=60, tick_interval=0.01, clock=lambda: 1_000.0)
        frames = []
        poller.subscribe(frames.append)
        async with poller:
            await asyncio.sleep(0.08)
        assert loader.calls == 1
        assert len(frames) >= 3
        assert frames[-1].now_ms == 1_000_000

    asyncio.run(scenario())


def test_for_backend_polls_list_sessions_off_the_loop() -> None:
    backend = InMemoryBackend(clock=lambda: datetime(2024, 5, 1, 10, 0))
    parent = backend.create_parent("Ayesha", "0300", [ChildInput("Zara")])
    backend.start_session(parent.id, [parent.children[0].id], 120)

    async def scenario() -> None:
        poller = SessionPoller.for_backend(backend, status="active", range="today")
        assert await poller.refresh()
        assert [item.parent_name for item in poller.rows] == ["Ayesha"]

    asyncio.run(scenario())
