"""Tests for the PlaybackController state machine and schedulers."""

import asyncio

import pytest

from task_time_machine.time_machine.playback import (
    AsyncioScheduler,
    ManualScheduler,
    PlaybackController,
)


@pytest.fixture()
def scheduler() -> ManualScheduler:
    """Return a scheduler that only fires when told to."""
    return ManualScheduler()


def test_initial_state_is_idle(scheduler):
    controller = PlaybackController(scheduler, position=30)
    assert controller.position == 30
    assert not controller.playing
    assert scheduler.active_timers == 0


def test_initial_position_is_clamped(scheduler):
    assert PlaybackController(scheduler, position=-10).position == 0
    assert PlaybackController(scheduler, position=140).position == 100


def test_playback_from_40_stops_exactly_at_100(scheduler):
    controller = PlaybackController(scheduler, position=40, increment=2)
    positions: list[float] = []
    controller.subscribe(positions.append)

    controller.play()
    assert controller.playing

    ticks = 0
    while controller.playing and ticks < 1000:
        scheduler.fire()
        ticks += 1

    assert ticks == 30
    assert controller.position == 100
    assert not controller.playing
    assert positions == [40 + 2 * step for step in range(1, 31)]
    assert scheduler.active_timers == 0

    # More ticks change nothing: no overshoot, no wrap
    scheduler.fire(5)
    assert controller.position == 100


def test_playback_clamps_when_increment_overshoots(scheduler):
    controller = PlaybackController(scheduler, position=97, increment=2)
    controller.play()
    scheduler.fire()
    assert controller.position == 99
    scheduler.fire()
    assert controller.position == 100
    assert not controller.playing


def test_play_at_end_is_a_noop(scheduler):
    controller = PlaybackController(scheduler, position=100)
    controller.play()
    assert not controller.playing
    assert scheduler.active_timers == 0


def test_play_twice_keeps_one_timer(scheduler):
    controller = PlaybackController(scheduler, position=0)
    controller.play()
    controller.play()
    assert scheduler.active_timers == 1


def test_toggle(scheduler):
    controller = PlaybackController(scheduler, position=0)
    controller.toggle()
    assert controller.playing
    controller.toggle()
    assert not controller.playing
    assert scheduler.active_timers == 0


def test_seek_while_playing_stops_playback(scheduler):
    controller = PlaybackController(scheduler, position=10)
    controller.play()
    scheduler.fire()
    controller.seek(60)
    assert controller.position == 60
    assert not controller.playing
    assert scheduler.active_timers == 0


def test_seek_is_clamped(scheduler):
    controller = PlaybackController(scheduler, position=50)
    controller.seek(-20)
    assert controller.position == 0
    controller.seek(250)
    assert controller.position == 100
    controller.seek(float("nan"))
    assert controller.position == 0


def test_steps_move_by_seek_step_and_clamp(scheduler):
    controller = PlaybackController(scheduler, position=3, seek_step=5)
    controller.step_forward()
    assert controller.position == 8
    controller.step_back()
    controller.step_back()
    assert controller.position == 0
    controller.seek(98)
    controller.step_forward()
    assert controller.position == 100


def test_step_while_playing_stops_playback(scheduler):
    controller = PlaybackController(scheduler, position=10)
    controller.play()
    controller.step_back()
    assert not controller.playing
    assert controller.position == 5


def test_listener_called_only_on_change(scheduler):
    controller = PlaybackController(scheduler, position=50)
    seen: list[float] = []
    unsubscribe = controller.subscribe(seen.append)
    controller.seek(50)
    controller.seek(70)
    unsubscribe()
    controller.seek(80)
    assert seen == [70]


def test_close_cancels_timer_and_ignores_later_calls(scheduler):
    controller = PlaybackController(scheduler, position=0)
    seen: list[float] = []
    controller.subscribe(seen.append)
    controller.play()
    controller.close()

    assert controller.closed
    assert not controller.playing
    assert scheduler.active_timers == 0

    controller.play()
    controller.seek(40)
    controller.tick()
    scheduler.fire()
    assert controller.position == 0
    assert seen == []
    controller.close()


def test_raising_listener_does_not_block_others_or_stop_playback(scheduler):
    controller = PlaybackController(scheduler, position=96, increment=2)
    seen: list[float] = []

    def broken(position: float) -> None:
        raise RuntimeError("render failed")

    controller.subscribe(broken)
    controller.subscribe(seen.append)
    controller.play()
    scheduler.fire(2)

    assert seen == [98, 100]
    assert controller.position == 100
    assert not controller.playing
    assert scheduler.active_timers == 0


def test_tick_while_idle_is_ignored(scheduler):
    controller = PlaybackController(scheduler, position=20)
    controller.tick()
    assert controller.position == 20


@pytest.mark.asyncio
async def test_asyncio_scheduler_drives_playback_to_the_end():
    controller = PlaybackController(AsyncioScheduler(), position=90, interval_ms=1, increment=2)
    finished = asyncio.Event()

    def on_change(position: float) -> None:
        if position >= 100:
            finished.set()

    controller.subscribe(on_change)
    controller.play()
    await asyncio.wait_for(finished.wait(), timeout=5)

    assert controller.position == 100
    assert not controller.playing


@pytest.mark.asyncio
async def test_asyncio_timer_stops_after_cancel():
    calls: list[int] = []
    timer = AsyncioScheduler().schedule_periodic(0.001, lambda: calls.append(1))
    await asyncio.sleep(0.02)
    timer.cancel()
    seen = len(calls)
    await asyncio.sleep(0.02)
    assert seen > 0
    assert len(calls) == seen
    assert not timer.active


@pytest.mark.asyncio
async def test_asyncio_timer_keeps_running_after_callback_error():
    calls: list[int] = []

    def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick failed")

    timer = AsyncioScheduler().schedule_periodic(0.001, flaky)
    await asyncio.sleep(0.03)
    timer.cancel()
    assert len(calls) > 1


@pytest.mark.asyncio
async def test_asyncio_playback_finishes_when_a_listener_raises():
    controller = PlaybackController(AsyncioScheduler(), position=90, interval_ms=1, increment=2)
    finished = asyncio.Event()
    failures: list[float] = []

    def flaky(position: float) -> None:
        if not failures:
            failures.append(position)
            raise RuntimeError("listener failed")

    def on_change(position: float) -> None:
        if position >= 100:
            finished.set()

    controller.subscribe(flaky)
    controller.subscribe(on_change)
    controller.play()
    await asyncio.wait_for(finished.wait(), timeout=5)

    assert failures == [92]
    assert controller.position == 100
    assert not controller.playing
