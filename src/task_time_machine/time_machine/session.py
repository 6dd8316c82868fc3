"""One open Time Machine view.

A session is created when the user opens the Time Machine and closed when
the view is dismissed. It holds the activity log and roster for its whole
lifetime, derives the timeline index once, and recomputes the snapshot every
time the playback controller moves the scrub position.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from types import TracebackType
from typing import Any

from pydantic import ValidationError

from task_time_machine.observability import get_logger
from task_time_machine.settings import Settings, get_settings
from task_time_machine.time_machine.baseline import BaselineFn, make_default_baseline
from task_time_machine.time_machine.event_log import EventLog
from task_time_machine.time_machine.events import TaskChangeEvent, TaskRecord
from task_time_machine.time_machine.playback import PlaybackController, Scheduler
from task_time_machine.time_machine.reconstructor import ReplayEngine
from task_time_machine.time_machine.snapshot import Snapshot, SnapshotView
from task_time_machine.time_machine.timeline import Clock, TimelineIndex, utc_now

logger = get_logger(__name__)


def _coerce_tasks(tasks: Iterable[TaskRecord | Mapping[str, Any]]) -> tuple[list[TaskRecord], int]:
    accepted: list[TaskRecord] = []
    skipped = 0
    for task in tasks:
        if isinstance(task, TaskRecord):
            accepted.append(task)
            continue
        try:
            accepted.append(TaskRecord.model_validate(task))
        except ValidationError as exc:
            skipped += 1
            logger.debug(
                "Skipping malformed roster entry",
                extra={"error_count": exc.error_count()},
            )
    return accepted, skipped


class TimeMachineSession:
    """Wires the index, replay engine and playback controller together.

    Args:
        events: The activity log, or raw records to build one from.
        tasks: The task roster (TaskRecord or camelCase dicts); malformed
            entries are skipped.
        scheduler: Timer source for autoplay.
        settings: Service settings; defaults to ``get_settings()``.
        baseline_fn: Baseline override; defaults to one built from settings.
        clock: Returns the current instant, for "today" on the timeline.
    """

    def __init__(
        self,
        events: EventLog | Iterable[TaskChangeEvent | Mapping[str, Any]],
        tasks: Iterable[TaskRecord | Mapping[str, Any]],
        scheduler: Scheduler,
        settings: Settings | None = None,
        baseline_fn: BaselineFn | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        zone = self._settings.zone

        self._log = events if isinstance(events, EventLog) else EventLog.from_records(events)
        self._tasks, self._skipped_tasks = _coerce_tasks(tasks)
        self._index = TimelineIndex.build(self._log, self._tasks, zone=zone, clock=clock)
        self._engine = ReplayEngine(
            baseline_fn=baseline_fn
            or make_default_baseline(
                status=self._settings.default_status,
                priority=self._settings.default_priority,
                unassigned_label=self._settings.unassigned_label,
            ),
            zone=zone,
        )
        self._controller = PlaybackController(
            scheduler,
            position=self._settings.initial_position,
            interval_ms=self._settings.playback_interval_ms,
            increment=self._settings.playback_increment,
            seek_step=self._settings.seek_step,
        )
        self._snapshot = self._replay(self._controller.position)
        self._controller.subscribe(self._on_position_change)

        logger.info(
            "Time Machine session opened",
            extra={
                "task_count": len(self._tasks),
                "event_count": len(self._log),
                "skipped_records": self._log.skipped,
                "skipped_tasks": self._skipped_tasks,
                "date_count": len(self._index),
            },
        )

    # ------------------------------------------------------------------ accessors

    @property
    def log(self) -> EventLog:
        return self._log

    @property
    def tasks(self) -> list[TaskRecord]:
        return list(self._tasks)

    @property
    def skipped_tasks(self) -> int:
        """Number of roster entries rejected as malformed."""
        return self._skipped_tasks

    @property
    def index(self) -> TimelineIndex:
        return self._index

    @property
    def controller(self) -> PlaybackController:
        return self._controller

    @property
    def snapshot(self) -> Snapshot:
        """Snapshot at the current scrub position."""
        return self._snapshot

    @property
    def view(self) -> SnapshotView:
        return SnapshotView(self._snapshot)

    @property
    def closed(self) -> bool:
        return self._controller.closed

    # ------------------------------------------------------------------ navigation

    def jump_to(self, day: date) -> None:
        """Seek to the anchor day on or before ``day``."""
        self._controller.seek(self._index.position_for_date(day))

    def close(self) -> None:
        """Stop playback and release the timer. Idempotent."""
        if self._controller.closed:
            return
        self._controller.close()
        logger.info("Time Machine session closed")

    def __enter__(self) -> TimeMachineSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------ internals

    def _replay(self, position: float) -> Snapshot:
        return self._engine.reconstruct_at_position(self._tasks, self._log, self._index, position)

    def _on_position_change(self, position: float) -> None:
        self._snapshot = self._replay(position)
