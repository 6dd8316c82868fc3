"""Scrub position state machine and its playback timer.

The controller owns two values: ``position`` on a 0-100 scale and
``playing``. While playing, a periodic timer advances the position by a
fixed increment until it reaches 100, where playback stops (it never wraps).
Any manual seek or step cancels playback. Every position change is pushed
synchronously to the registered listeners.

The timer comes from a Scheduler so the controller does not depend on any
particular event loop: ``AsyncioScheduler`` drives it in a running asyncio
loop and ``ManualScheduler`` lets callers fire ticks themselves.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

from task_time_machine.observability import get_logger
from task_time_machine.time_machine.timeline import MAX_POSITION, MIN_POSITION, clamp_position

logger = get_logger(__name__)

DEFAULT_INTERVAL_MS = 150
DEFAULT_INCREMENT = 2.0
DEFAULT_SEEK_STEP = 5.0

PositionListener = Callable[[float], None]


class TimerHandle(Protocol):
    """A running periodic callback."""

    def cancel(self) -> None:
        """Stop the callback. Safe to call more than once."""


class Scheduler(Protocol):
    """Creates cancellable periodic callbacks."""

    def schedule_periodic(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        """Call ``callback`` every ``interval_s`` seconds until cancelled."""


class _AsyncioTimer:
    """Self-rearming ``call_later`` timer."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_s: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval_s = interval_s
        self._callback = callback
        self._running = True
        self._handle: asyncio.TimerHandle | None = None
        self._schedule_next_tick()

    def _schedule_next_tick(self) -> None:
        if not self._running:
            return
        self._handle = self._loop.call_later(self._interval_s, self._fire)

    def _fire(self) -> None:
        if not self._running:
            return
        try:
            self._callback()
        finally:
            # The callback may have cancelled us
            self._schedule_next_tick()

    @property
    def active(self) -> bool:
        return self._running

    def cancel(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    Args:
        loop: Loop to schedule on. Defaults to the running loop at the time
            ``schedule_periodic`` is called.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def schedule_periodic(self, interval_s: float, callback: Callable[[], None]) -> _AsyncioTimer:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioTimer(loop, interval_s, callback)


class _ManualTimer:
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        self.active = False


class ManualScheduler:
    """Scheduler whose timers only fire when ``fire`` is called."""

    def __init__(self) -> None:
        self._timers: list[_ManualTimer] = []

    def schedule_periodic(self, interval_s: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(callback)
        self._timers.append(timer)
        return timer

    @property
    def active_timers(self) -> int:
        """Number of timers that have not been cancelled."""
        return sum(1 for timer in self._timers if timer.active)

    def fire(self, times: int = 1) -> int:
        """Fire every active timer ``times`` times.

        Returns:
            The number of callbacks invoked.
        """
        fired = 0
        for _ in range(times):
            for timer in list(self._timers):
                if timer.active:
                    timer.callback()
                    fired += 1
            self._timers = [timer for timer in self._timers if timer.active]
        return fired


class PlaybackController:
    """State machine for scrubbing and autoplay.

    Idle (``playing`` False) accepts seeks, steps and ``play``. Playing runs
    a periodic timer; each tick adds ``increment`` and stops at 100. Manual
    seeks and steps cancel playback. After ``close`` the controller ignores
    every call and holds no timer.

    Args:
        scheduler: Source of the playback timer.
        position: Starting scrub position (clamped).
        interval_ms: Milliseconds between ticks.
        increment: Position advance per tick.
        seek_step: Position change for ``step_back`` / ``step_forward``.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        position: float = MAX_POSITION,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        increment: float = DEFAULT_INCREMENT,
        seek_step: float = DEFAULT_SEEK_STEP,
    ) -> None:
        self._scheduler = scheduler
        self._position = clamp_position(position)
        self._interval_s = interval_ms / 1000.0
        self._increment = increment
        self._seek_step = seek_step
        self._timer: TimerHandle | None = None
        self._closed = False
        self._listeners: list[PositionListener] = []

    # ------------------------------------------------------------------ state

    @property
    def position(self) -> float:
        return self._position

    @property
    def playing(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: PositionListener) -> Callable[[], None]:
        """Register a listener called with the new position on every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------ transitions

    def play(self) -> None:
        """Start autoplay from the current position.

        No-op when already playing, when closed, or at position 100.
        """
        if self._closed or self.playing:
            return
        if self._position >= MAX_POSITION:
            logger.debug("Play ignored at end of timeline")
            return
        self._timer = self._scheduler.schedule_periodic(self._interval_s, self.tick)
        logger.info("Playback started", extra={"position": self._position})

    def pause(self) -> None:
        """Stop autoplay, keeping the current position."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("Playback stopped", extra={"position": self._position})

    def toggle(self) -> None:
        """Play when idle, pause when playing."""
        if self.playing:
            self.pause()
        else:
            self.play()

    def seek(self, position: float) -> None:
        """Jump to ``position`` (clamped). Cancels autoplay."""
        if self._closed:
            return
        self.pause()
        self._set_position(clamp_position(position))

    def step_back(self) -> None:
        """Move back by the seek step. Cancels autoplay."""
        self.seek(self._position - self._seek_step)

    def step_forward(self) -> None:
        """Move forward by the seek step. Cancels autoplay."""
        self.seek(self._position + self._seek_step)

    def tick(self) -> None:
        """Advance one autoplay increment; stop at 100.

        Only acts while playing, so a tick delivered after a pause is ignored.
        """
        if self._closed or not self.playing:
            return
        next_position = self._position + self._increment
        if next_position >= MAX_POSITION:
            self.pause()
            self._set_position(MAX_POSITION)
            return
        self._set_position(max(MIN_POSITION, next_position))

    def close(self) -> None:
        """Cancel the timer and detach listeners. Idempotent."""
        if self._closed:
            return
        self.pause()
        self._closed = True
        self._listeners.clear()

    # ------------------------------------------------------------------ internals

    def _set_position(self, position: float) -> None:
        if position == self._position:
            return
        self._position = position
        for listener in list(self._listeners):
            try:
                listener(position)
            except Exception:
                logger.warning(
                    "Position listener failed",
                    extra={"position": position},
                    exc_info=True,
                )
