"""Immutable, time-ordered activity log for the Time Machine.

Holds TaskChangeEvent instances ordered by ``(timestamp, sequence)`` where
``sequence`` is the order in which records were ingested. Two events that
share a timestamp are therefore always replayed in the order the activity
service delivered them; the tie-break does not depend on sort stability.

The log is read-only once built. It is produced by the activity feed (or any
caller holding raw records) and shared by the index and the replay engine for
the lifetime of one Time Machine session.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from task_time_machine.observability import get_logger
from task_time_machine.time_machine.events import TaskChangeEvent, TaskId

logger = get_logger(__name__)


def _coerce_event(record: TaskChangeEvent | Mapping[str, Any]) -> TaskChangeEvent | None:
    if isinstance(record, TaskChangeEvent):
        return record
    try:
        return TaskChangeEvent.model_validate(record)
    except ValidationError as exc:
        logger.debug(
            "Skipping malformed activity record",
            extra={"error_count": exc.error_count(), "record_id": _record_id(record)},
        )
        return None


def _record_id(record: Any) -> Any:
    if isinstance(record, Mapping):
        return record.get("id")
    return None


class EventLog:
    """Append-free, ordered sequence of task change events.

    Args:
        events: Already-validated events in ingestion order.
        skipped: Number of raw records rejected while building the log.
    """

    def __init__(self, events: Iterable[TaskChangeEvent] = (), skipped: int = 0) -> None:
        """Order the events by timestamp, ties by ingestion order."""
        indexed = sorted(
            enumerate(events),
            key=lambda pair: (pair[1].timestamp, pair[0]),
        )
        self._events: tuple[TaskChangeEvent, ...] = tuple(event for _, event in indexed)
        # Parallel list of timestamps for bisect lookups
        self._timestamps: list[datetime] = [event.timestamp for event in self._events]
        self._skipped = skipped

    @classmethod
    def from_records(
        cls,
        records: Iterable[TaskChangeEvent | Mapping[str, Any]],
    ) -> EventLog:
        """Build a log from events or raw activity payloads.

        Records that fail validation (missing task id, unparseable
        timestamp, ...) are skipped and counted, never raised.

        Args:
            records: TaskChangeEvent instances or camelCase/snake_case dicts.

        Returns:
            A new EventLog.
        """
        accepted: list[TaskChangeEvent] = []
        skipped = 0
        for record in records:
            event = _coerce_event(record)
            if event is None:
                skipped += 1
                continue
            accepted.append(event)

        if skipped:
            logger.info(
                "Activity log built with skipped records",
                extra={"accepted": len(accepted), "skipped": skipped},
            )
        return cls(accepted, skipped=skipped)

    @property
    def skipped(self) -> int:
        """Number of raw records rejected during construction."""
        return self._skipped

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[TaskChangeEvent]:
        return iter(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)

    @property
    def events(self) -> tuple[TaskChangeEvent, ...]:
        """All events, oldest first."""
        return self._events

    def up_to(self, instant: datetime) -> tuple[TaskChangeEvent, ...]:
        """Return events with ``timestamp <= instant``, oldest first.

        Args:
            instant: Inclusive upper bound (aware datetime).
        """
        high = bisect.bisect_right(self._timestamps, instant)
        return self._events[:high]

    def between(self, start: datetime, end: datetime) -> tuple[TaskChangeEvent, ...]:
        """Return events with ``start < timestamp <= end``, oldest first.

        Args:
            start: Exclusive lower bound.
            end: Inclusive upper bound.
        """
        if end <= start:
            return ()
        low = bisect.bisect_right(self._timestamps, start)
        high = bisect.bisect_right(self._timestamps, end)
        return self._events[low:high]

    def for_task(self, task_id: TaskId) -> tuple[TaskChangeEvent, ...]:
        """Return the audit trail of a single task, oldest first."""
        return tuple(event for event in self._events if event.task_id == task_id)

    def task_ids(self) -> set[TaskId]:
        """Return every task id referenced by the log."""
        return {event.task_id for event in self._events}
