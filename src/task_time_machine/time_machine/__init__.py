"""Task Time Machine: reconstruction of a task board at any past moment.

Replays the append-only activity log of a project's tasks onto a baseline
state to rebuild every task's status, priority and assignee as of any day,
and drives a scrubbable, auto-playing timeline over the result.
"""

from __future__ import annotations

from task_time_machine.time_machine.baseline import (
    TaskBaseline,
    creation_state_baseline,
    default_baseline,
    make_default_baseline,
)
from task_time_machine.time_machine.event_log import EventLog
from task_time_machine.time_machine.events import TaskChangeEvent, TaskRecord
from task_time_machine.time_machine.playback import (
    AsyncioScheduler,
    ManualScheduler,
    PlaybackController,
)
from task_time_machine.time_machine.reconstructor import FieldChange, ReplayEngine
from task_time_machine.time_machine.session import TimeMachineSession
from task_time_machine.time_machine.snapshot import Snapshot, SnapshotView, StatusCounts, TaskState
from task_time_machine.time_machine.timeline import TimelineIndex

__all__ = [
    "AsyncioScheduler",
    "EventLog",
    "FieldChange",
    "ManualScheduler",
    "PlaybackController",
    "ReplayEngine",
    "Snapshot",
    "SnapshotView",
    "StatusCounts",
    "TaskBaseline",
    "TaskChangeEvent",
    "TaskRecord",
    "TaskState",
    "TimeMachineSession",
    "TimelineIndex",
    "creation_state_baseline",
    "default_baseline",
    "make_default_baseline",
]
