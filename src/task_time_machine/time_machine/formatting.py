"""Human-readable rendering of activity log entries for audit display."""

from __future__ import annotations

from task_time_machine.time_machine.events import (
    ASSIGNEE_FIELD,
    CREATED_TASK_ACTION,
    PRIORITY_FIELD,
    STATUS_FIELD,
    TaskChangeEvent,
)
from task_time_machine.time_machine.snapshot import STATUS_LABELS

FIELD_LABELS: dict[str, str] = {
    PRIORITY_FIELD: "priority",
    STATUS_FIELD: "status",
    ASSIGNEE_FIELD: "assignee",
    "dueDate": "due date",
}


def format_value(value: str, field_name: str) -> str:
    """Render a field value: status codes as labels, priorities capitalised."""
    if field_name == STATUS_FIELD:
        return STATUS_LABELS.get(value, value)
    if field_name == PRIORITY_FIELD and value:
        return value[0].upper() + value[1:]
    return value


def format_log_message(event: TaskChangeEvent) -> str:
    """Describe an activity entry, e.g. 'changed status from To Do to Done'."""
    if event.action_type == CREATED_TASK_ACTION:
        return "created this task"

    field_label = FIELD_LABELS.get(event.field_name, event.field_name)
    new_value = format_value(event.new_value or "", event.field_name)
    if not event.old_value:
        return f"set {field_label} to {new_value}"
    old_value = format_value(event.old_value, event.field_name)
    return f"changed {field_label} from {old_value} to {new_value}"
