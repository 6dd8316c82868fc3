"""Task change event and roster schemas for the Time Machine.

Every field-level change to a task is recorded by the task service as an
immutable activity entry. The Time Machine consumes those entries together
with the current task roster and never writes either back.

Wire payloads use camelCase (``taskId``, ``fieldName``...) while Python code
uses snake_case; both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TaskId = Union[int, str]

STATUS_FIELD = "status"
PRIORITY_FIELD = "priority"
ASSIGNEE_FIELD = "assignedUser"

# Wire field name -> TaskState attribute
TRACKED_FIELDS: dict[str, str] = {
    STATUS_FIELD: "status",
    PRIORITY_FIELD: "priority",
    ASSIGNEE_FIELD: "assigned_user",
}

CREATED_TASK_ACTION = "CREATED_TASK"


def parse_instant(value: Any) -> datetime | None:
    """Parse a timestamp into a timezone-aware datetime.

    Accepts datetimes, dates, ISO-8601 strings (``Z`` suffix or offset,
    or a bare ``YYYY-MM-DD``) and Unix epoch milliseconds. Naive values are
    treated as UTC.

    Args:
        value: The raw timestamp.

    Returns:
        An aware datetime, or None if the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TaskChangeEvent(BaseModel):
    """Immutable record of one field-level change to a task.

    Attributes:
        id: Identifier of the entry, unique at least within its task.
        task_id: The task that changed.
        actor_id: Opaque identifier of whoever made the change.
        field_name: Changed field (``status``, ``priority``, ``assignedUser``;
            other names are recorded but ignored by replay).
        old_value: Value before the change, kept for audit display only.
        new_value: Value after the change.
        timestamp: When the change happened (aware, second resolution or finer).
        action_type: Optional classification such as ``UPDATED_STATUS``.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: TaskId | None = Field(default=None, description="Entry identifier")
    task_id: TaskId = Field(..., description="Owning task identifier")
    actor_id: str = Field(
        default="system",
        validation_alias=AliasChoices("actorId", "userId", "actor_id"),
        description="Who made the change",
    )
    field_name: str = Field(..., description="Name of the changed field")
    old_value: str | None = Field(default=None, description="Value before the change")
    new_value: str | None = Field(default=None, description="Value after the change")
    timestamp: datetime = Field(..., description="When the change happened")
    action_type: str | None = Field(default=None, description="Change classification")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime:
        parsed = parse_instant(value)
        if parsed is None:
            raise ValueError(f"Unparseable timestamp: {value!r}")
        return parsed

    @field_validator("old_value", "new_value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)

    @property
    def is_tracked(self) -> bool:
        """Whether replay applies this event to task state."""
        return self.field_name in TRACKED_FIELDS


class TaskRecord(BaseModel):
    """One task from the roster supplied by the task service.

    Only ``id`` and ``created_at`` drive reconstruction; the remaining fields
    are carried for display. An unparseable ``created_at`` is dropped rather
    than rejecting the task.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: TaskId
    title: str = ""
    status: str | None = None
    priority: str | None = None
    assigned_user: str | None = None
    created_at: datetime | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, value: Any) -> datetime | None:
        return parse_instant(value)
