"""FastAPI routes for the Time Machine API.

The routes are stateless: callers post the task roster and the activity
entries they already hold, and receive derived, read-only views. Storage of
the activity log stays with the task service.

Routes:
    POST /time-machine/timeline     : anchor dates and labels for the scrubber
    POST /time-machine/snapshot     : board state at a scrub position
    POST /time-machine/diff         : field changes between two positions
    POST /time-machine/audit-trail  : one task's activity with rendered messages
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from task_time_machine.settings import Settings, get_settings
from task_time_machine.time_machine.baseline import make_default_baseline
from task_time_machine.time_machine.event_log import EventLog
from task_time_machine.time_machine.events import TaskId, TaskRecord
from task_time_machine.time_machine.formatting import format_log_message
from task_time_machine.time_machine.reconstructor import FieldChange, ReplayEngine
from task_time_machine.time_machine.snapshot import SnapshotView, TaskState
from task_time_machine.time_machine.timeline import TimelineIndex

router = APIRouter(prefix="/time-machine", tags=["Time Machine"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class TimelineRequest(BaseModel):
    """Roster and raw activity entries.

    Attributes:
        tasks: The task roster.
        events: Raw activity entries; malformed entries are skipped.
    """

    tasks: list[TaskRecord] = Field(default_factory=list, description="The task roster")
    events: list[dict[str, Any]] = Field(
        default_factory=list, description="Raw activity entries (camelCase)"
    )


class TimelineResponse(BaseModel):
    """Anchor dates of the scrubber."""

    model_config = ConfigDict(frozen=True)

    dates: list[str] = Field(..., description="Anchor days, YYYY-MM-DD, ascending")
    labels: list[str] = Field(..., description="Short labels for each anchor day")
    event_count: int = Field(..., description="Accepted activity entries")
    skipped_count: int = Field(..., description="Malformed activity entries skipped")


class SnapshotRequest(TimelineRequest):
    """Roster, activity and the scrub position to reconstruct at."""

    position: float = Field(default=100.0, description="Scrub position; clamped to 0-100")


class SnapshotResponse(BaseModel):
    """Board state at a scrub position."""

    model_config = ConfigDict(frozen=True)

    position: float
    date: str = Field(..., description="Selected anchor day, YYYY-MM-DD")
    label: str = Field(..., description="Long label of the selected day")
    target_instant: datetime
    event_count: int = Field(..., description="Changes applied to reach this state")
    tasks: list[TaskState]
    status_counts: dict[str, int]
    status_bar: list[tuple[str, float]]


class DiffRequest(TimelineRequest):
    """Roster, activity and the two scrub positions to compare."""

    from_position: float = Field(..., description="Earlier scrub position")
    to_position: float = Field(..., description="Later scrub position")


class DiffResponse(BaseModel):
    """Tracked fields that changed between two positions."""

    model_config = ConfigDict(frozen=True)

    from_date: str
    to_date: str
    changes: list[FieldChange]


class AuditTrailRequest(BaseModel):
    """Activity entries and the task whose trail to render."""

    task_id: TaskId
    events: list[dict[str, Any]] = Field(default_factory=list)


class AuditTrailEntry(BaseModel):
    """A single activity entry with its rendered message."""

    model_config = ConfigDict(frozen=True)

    id: TaskId | None
    actor_id: str
    field_name: str
    old_value: str | None
    new_value: str | None
    timestamp: datetime
    message: str


class AuditTrailResponse(BaseModel):
    """A task's activity, newest first."""

    model_config = ConfigDict(frozen=True)

    task_id: TaskId
    entries: list[AuditTrailEntry]
    total: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engine(settings: Settings) -> ReplayEngine:
    return ReplayEngine(
        baseline_fn=make_default_baseline(
            status=settings.default_status,
            priority=settings.default_priority,
            unassigned_label=settings.unassigned_label,
        ),
        zone=settings.zone,
    )


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


@router.post(
    "/timeline",
    response_model=TimelineResponse,
    status_code=status.HTTP_200_OK,
    summary="Anchor dates for the timeline scrubber",
)
async def build_timeline(
    body: TimelineRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> TimelineResponse:
    """Return the sorted anchor days spanned by the roster and activity."""
    log = EventLog.from_records(body.events)
    index = TimelineIndex.build(log, body.tasks, zone=settings.zone)
    return TimelineResponse(
        dates=index.iso_dates,
        labels=index.labels,
        event_count=len(log),
        skipped_count=log.skipped,
    )


@router.post(
    "/snapshot",
    response_model=SnapshotResponse,
    status_code=status.HTTP_200_OK,
    summary="Reconstruct the board at a scrub position",
)
async def reconstruct_snapshot(
    body: SnapshotRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> SnapshotResponse:
    """Reconstruct every task as of the end of the selected day."""
    log = EventLog.from_records(body.events)
    index = TimelineIndex.build(log, body.tasks, zone=settings.zone)
    snapshot = _engine(settings).reconstruct_at_position(body.tasks, log, index, body.position)
    counts = SnapshotView(snapshot).status_counts()

    return SnapshotResponse(
        position=body.position,
        date=index.position_to_date(body.position).isoformat(),
        label=snapshot.label,
        target_instant=snapshot.target_instant,
        event_count=snapshot.event_count,
        tasks=list(snapshot.states.values()),
        status_counts=counts.counts,
        status_bar=counts.status_bar(),
    )


@router.post(
    "/diff",
    response_model=DiffResponse,
    status_code=status.HTTP_200_OK,
    summary="Field changes between two scrub positions",
)
async def diff_positions(
    body: DiffRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> DiffResponse:
    """Compare the board at two positions.

    Positions are not required to be ordered; a reversed pair yields the
    changes with ``before`` and ``after`` swapped.
    """
    log = EventLog.from_records(body.events)
    index = TimelineIndex.build(log, body.tasks, zone=settings.zone)
    changes = _engine(settings).diff(
        body.tasks,
        log,
        index.position_to_instant(body.from_position),
        index.position_to_instant(body.to_position),
    )
    return DiffResponse(
        from_date=index.position_to_date(body.from_position).isoformat(),
        to_date=index.position_to_date(body.to_position).isoformat(),
        changes=changes,
    )


@router.post(
    "/audit-trail",
    response_model=AuditTrailResponse,
    status_code=status.HTTP_200_OK,
    summary="Rendered activity of a single task",
)
async def get_audit_trail(body: AuditTrailRequest) -> AuditTrailResponse:
    """Return a task's activity entries newest first with display messages."""
    log = EventLog.from_records(body.events)
    trail = list(reversed(log.for_task(body.task_id)))
    entries = [
        AuditTrailEntry(
            id=event.id,
            actor_id=event.actor_id,
            field_name=event.field_name,
            old_value=event.old_value,
            new_value=event.new_value,
            timestamp=event.timestamp,
            message=format_log_message(event),
        )
        for event in trail
    ]
    return AuditTrailResponse(task_id=body.task_id, entries=entries, total=len(entries))
