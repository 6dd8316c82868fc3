"""Baseline state of a task before any recorded change is applied.

The task service does not record creation-time field values, so by default
every task is assumed to start as ``todo`` / ``medium`` with its current
roster assignee. Baselines are injected as plain callables so a deployment
that does track creation state can supply it without touching replay.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from pydantic import BaseModel, ConfigDict

from task_time_machine.time_machine.events import TaskId, TaskRecord

DEFAULT_STATUS = "todo"
DEFAULT_PRIORITY = "medium"
UNASSIGNED = "Unassigned"


class TaskBaseline(BaseModel):
    """Assumed state of a task before its first logged change.

    Extra keyword arguments seed additional tracked fields.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    status: str = DEFAULT_STATUS
    priority: str = DEFAULT_PRIORITY
    assigned_user: str = UNASSIGNED


BaselineFn = Callable[[TaskRecord], TaskBaseline | None]


def make_default_baseline(
    status: str = DEFAULT_STATUS,
    priority: str = DEFAULT_PRIORITY,
    unassigned_label: str = UNASSIGNED,
) -> BaselineFn:
    """Build a baseline function from fixed defaults.

    The assignee is taken from the roster because assignment history is
    only partially logged; everything else starts at the given defaults.

    Args:
        status: Status every task starts in.
        priority: Priority every task starts with.
        unassigned_label: Assignee used when the roster has none.

    Returns:
        A BaselineFn.
    """

    def baseline(task: TaskRecord) -> TaskBaseline:
        return TaskBaseline(
            status=status,
            priority=priority,
            assigned_user=task.assigned_user or unassigned_label,
        )

    return baseline


default_baseline: BaselineFn = make_default_baseline()


def creation_state_baseline(
    known: Mapping[TaskId, TaskBaseline],
    fallback: BaselineFn = default_baseline,
) -> BaselineFn:
    """Baseline from recorded creation-time state, with a fallback.

    Args:
        known: Creation-time state per task id.
        fallback: Used for tasks missing from ``known``.

    Returns:
        A BaselineFn.
    """

    def baseline(task: TaskRecord) -> TaskBaseline | None:
        recorded = known.get(task.id)
        if recorded is not None:
            return recorded
        return fallback(task)

    return baseline
