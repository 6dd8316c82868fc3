"""Reconstructed board state and its read-only aggregations.

A Snapshot is recomputed from the activity log on every scrub position
change and never stored. SnapshotView folds it into the per-status counts
and grouped lists the board renders.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from task_time_machine.time_machine.events import TaskId

CANONICAL_STATUSES: tuple[str, ...] = ("todo", "inprogress", "done")

STATUS_LABELS: dict[str, str] = {
    "todo": "To Do",
    "inprogress": "In Progress",
    "done": "Done",
}

# Status bar segments, left to right
STATUS_BAR_ORDER: tuple[str, ...] = ("done", "inprogress", "todo")


def status_label(status: str) -> str:
    """Return the display label of a status code."""
    return STATUS_LABELS.get(status, status)


class TaskState(BaseModel):
    """Projected fields of one task at the snapshot instant.

    Fields tracked beyond the core three are kept as extra attributes.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: TaskId
    title: str = ""
    status: str
    priority: str
    assigned_user: str


class Snapshot(BaseModel):
    """State of every tracked task as of ``target_instant``.

    Attributes:
        states: Task id -> projected state, in roster order.
        event_count: Number of logged changes applied to reach this state.
        target_instant: Inclusive cut-off used for replay.
        label: Human-readable label of the target day.
    """

    model_config = ConfigDict(frozen=True)

    states: dict[TaskId, TaskState] = Field(default_factory=dict)
    event_count: int = 0
    target_instant: datetime
    label: str

    def __len__(self) -> int:
        return len(self.states)

    def get(self, task_id: TaskId) -> TaskState | None:
        """Return the projected state of a task, or None if untracked."""
        return self.states.get(task_id)


class StatusCounts(BaseModel):
    """Per-status task counts for the status bar."""

    model_config = ConfigDict(frozen=True)

    counts: dict[str, int]
    total: int

    def __getitem__(self, status: str) -> int:
        return self.counts.get(status, 0)

    def status_bar(self) -> list[tuple[str, float]]:
        """Return ``(status, width_percent)`` segments for the status bar.

        Widths are shares of all tasks, so statuses outside the three
        canonical ones leave the bar short of 100%. An empty board yields
        zero-width segments.
        """
        if self.total == 0:
            return [(status, 0.0) for status in STATUS_BAR_ORDER]
        return [
            (status, self.counts.get(status, 0) / self.total * 100.0)
            for status in STATUS_BAR_ORDER
        ]


class SnapshotView:
    """Read-only projection of a Snapshot for the presentation layer.

    Args:
        snapshot: The snapshot to aggregate.
    """

    def __init__(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def label(self) -> str:
        return self._snapshot.label

    @property
    def event_count(self) -> int:
        return self._snapshot.event_count

    def status_counts(self) -> StatusCounts:
        """Count tasks per status; canonical statuses are always present."""
        counts: dict[str, int] = {status: 0 for status in CANONICAL_STATUSES}
        for state in self._snapshot.states.values():
            counts[state.status] = counts.get(state.status, 0) + 1
        return StatusCounts(counts=counts, total=len(self._snapshot.states))

    def group_by_status(self) -> dict[str, list[TaskState]]:
        """Group tasks by status for the column grid, roster order kept.

        The three canonical columns come first and are present even when
        empty; any other statuses follow in order of first appearance.
        """
        groups: dict[str, list[TaskState]] = {status: [] for status in CANONICAL_STATUSES}
        for state in self._snapshot.states.values():
            groups.setdefault(state.status, []).append(state)
        return groups
