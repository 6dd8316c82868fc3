"""Replay engine for the Time Machine.

Given the task roster, a baseline for each task and the activity log,
reconstructs the state of every task at any past instant by folding all
changes with ``timestamp <= target`` onto the baseline, oldest first. The
last qualifying change of a (task, field) pair wins.

Reconstruction is a best-effort read path: unknown fields, changes to
tasks that are no longer on the roster and failing baseline functions are
absorbed, never raised.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone, tzinfo

from pydantic import BaseModel, ConfigDict

from task_time_machine.observability import get_logger
from task_time_machine.time_machine.baseline import BaselineFn, TaskBaseline, default_baseline
from task_time_machine.time_machine.events import TRACKED_FIELDS, TaskChangeEvent, TaskId, TaskRecord
from task_time_machine.time_machine.snapshot import Snapshot, TaskState
from task_time_machine.time_machine.timeline import TimelineIndex, local_date, long_label

logger = get_logger(__name__)


class FieldChange(BaseModel):
    """One field whose value differs between two reconstructed instants."""

    model_config = ConfigDict(frozen=True)

    task_id: TaskId
    field_name: str
    before: str
    after: str


def _ordered(events: Iterable[TaskChangeEvent]) -> list[TaskChangeEvent]:
    # Ties keep input order: the index is part of the key, not left to sort stability
    indexed = list(enumerate(events))
    indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]))
    return [event for _, event in indexed]


class ReplayEngine:
    """Reconstructs per-task state at historical instants.

    Args:
        baseline_fn: Default baseline used when ``reconstruct`` is not given one.
        tracked_fields: Wire field name -> TaskState attribute for the fields
            replay applies. Other field names are ignored.
        zone: Timezone used to label the target day.
    """

    def __init__(
        self,
        baseline_fn: BaselineFn = default_baseline,
        tracked_fields: Mapping[str, str] = TRACKED_FIELDS,
        zone: tzinfo = timezone.utc,
    ) -> None:
        self._baseline_fn = baseline_fn
        reserved = {"id", "title"} & set(tracked_fields.values())
        if reserved:
            raise ValueError(f"Tracked fields cannot map onto {sorted(reserved)}")
        self._tracked_fields = dict(tracked_fields)
        self._zone = zone

    def _baseline_for(self, task: TaskRecord, baseline_fn: BaselineFn) -> TaskBaseline:
        try:
            baseline = baseline_fn(task)
        except Exception:
            logger.warning(
                "Baseline function failed, using defaults",
                extra={"task_id": task.id},
                exc_info=True,
            )
            baseline = None
        if baseline is not None and not isinstance(baseline, TaskBaseline):
            logger.warning(
                "Baseline function returned an unexpected type, using defaults",
                extra={"task_id": task.id, "baseline_type": type(baseline).__name__},
            )
            baseline = None
        if baseline is None:
            baseline = default_baseline(task)
        return baseline

    def reconstruct(
        self,
        tasks: Iterable[TaskRecord],
        events: Iterable[TaskChangeEvent],
        target_instant: datetime,
        baseline_fn: BaselineFn | None = None,
    ) -> Snapshot:
        """Reconstruct every roster task as of ``target_instant``.

        Events are ordered by timestamp once per call (ties keep input
        order) and applied until the first event after the target, which
        ends the scan. Changes to tasks absent from the roster and changes
        to untracked fields are not applied and not counted.

        Args:
            tasks: The task roster. Duplicate ids keep the first entry.
            events: Logged changes in any order.
            target_instant: Inclusive cut-off. Naive values are treated as UTC.
            baseline_fn: Baseline for this call; defaults to the engine's.

        Returns:
            The Snapshot at ``target_instant``.
        """
        if target_instant.tzinfo is None:
            target_instant = target_instant.replace(tzinfo=timezone.utc)
        effective_baseline = baseline_fn or self._baseline_fn

        titles: dict[TaskId, str] = {}
        working: dict[TaskId, dict[str, str]] = {}
        for task in tasks:
            if task.id in working:
                continue
            baseline = self._baseline_for(task, effective_baseline)
            titles[task.id] = task.title
            fields = {
                "status": baseline.status,
                "priority": baseline.priority,
                "assigned_user": baseline.assigned_user,
            }
            # Extra tracked fields start from the baseline value when it has one
            for attribute in self._tracked_fields.values():
                if attribute not in fields:
                    fields[attribute] = str(getattr(baseline, attribute, None) or "")
            working[task.id] = fields

        applied = 0
        for event in _ordered(events):
            if event.timestamp > target_instant:
                break
            state = working.get(event.task_id)
            if state is None:
                continue
            attribute = self._tracked_fields.get(event.field_name)
            if attribute is None or event.new_value is None:
                continue
            state[attribute] = event.new_value
            applied += 1

        states = {
            task_id: TaskState(id=task_id, title=titles[task_id], **fields)
            for task_id, fields in working.items()
        }
        label = long_label(local_date(target_instant, self._zone))

        logger.debug(
            "Reconstructed task states",
            extra={"task_count": len(states), "event_count": applied, "target": target_instant.isoformat()},
        )
        return Snapshot(
            states=states,
            event_count=applied,
            target_instant=target_instant,
            label=label,
        )

    def reconstruct_at_position(
        self,
        tasks: Iterable[TaskRecord],
        events: Iterable[TaskChangeEvent],
        index: TimelineIndex,
        position: float,
        baseline_fn: BaselineFn | None = None,
    ) -> Snapshot:
        """Reconstruct at the end of the day selected by a scrub position.

        Args:
            tasks: The task roster.
            events: Logged changes in any order.
            index: Timeline index that maps the position to a day.
            position: Scrub position; clamped to [0, 100].
            baseline_fn: Baseline for this call; defaults to the engine's.

        Returns:
            The Snapshot at the selected day.
        """
        target = index.position_to_instant(position)
        return self.reconstruct(tasks, events, target, baseline_fn=baseline_fn)

    def diff(
        self,
        tasks: Iterable[TaskRecord],
        events: Iterable[TaskChangeEvent],
        from_instant: datetime,
        to_instant: datetime,
        baseline_fn: BaselineFn | None = None,
    ) -> list[FieldChange]:
        """Return the tracked fields whose value differs between two instants.

        Both sides are reconstructed from the same roster and log, so the
        result lists each (task, field) once regardless of how many changes
        happened in between. Order follows the roster, then field order.

        Args:
            tasks: The task roster.
            events: Logged changes in any order.
            from_instant: The earlier instant.
            to_instant: The later instant.
            baseline_fn: Baseline for this call; defaults to the engine's.

        Returns:
            List of FieldChange, empty when nothing changed.
        """
        roster = list(tasks)
        log = list(events)
        before = self.reconstruct(roster, log, from_instant, baseline_fn=baseline_fn)
        after = self.reconstruct(roster, log, to_instant, baseline_fn=baseline_fn)

        changes: list[FieldChange] = []
        for task_id, old_state in before.states.items():
            new_state = after.states[task_id]
            for field_name, attribute in self._tracked_fields.items():
                old_value = getattr(old_state, attribute, "")
                new_value = getattr(new_state, attribute, "")
                if old_value != new_value:
                    changes.append(
                        FieldChange(
                            task_id=task_id,
                            field_name=field_name,
                            before=old_value,
                            after=new_value,
                        )
                    )
        return changes
