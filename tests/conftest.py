"""Test fixtures for task-time-machine.

Provides:
- fixed_now: A deterministic "current instant" for timeline construction
- clock: A callable returning fixed_now
- settings: UTC settings with the default playback cadence
- roster: A three-task roster
- make_event: Factory for TaskChangeEvent instances
"""

from datetime import UTC, datetime
from typing import Any, Callable

import pytest

from task_time_machine.settings import Settings
from task_time_machine.time_machine.events import TaskChangeEvent, TaskRecord


def build_event(
    task_id: int = 1,
    field_name: str = "status",
    new_value: str | None = "inprogress",
    timestamp: Any = "2024-01-02T10:00:00Z",
    old_value: str | None = None,
    event_id: int | None = None,
    actor_id: str = "user-1",
) -> TaskChangeEvent:
    """Build a minimal TaskChangeEvent for tests."""
    return TaskChangeEvent(
        id=event_id,
        task_id=task_id,
        actor_id=actor_id,
        field_name=field_name,
        old_value=old_value,
        new_value=new_value,
        timestamp=timestamp,
    )


@pytest.fixture()
def fixed_now() -> datetime:
    """Return a fixed 'now' after every event used in the tests.

    Returns:
        2024-01-10 12:00 UTC.
    """
    return datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


@pytest.fixture()
def clock(fixed_now: datetime) -> Callable[[], datetime]:
    """Return a clock that always reports fixed_now.

    Args:
        fixed_now: Injected fixed instant.

    Returns:
        A zero-argument callable.
    """
    return lambda: fixed_now


@pytest.fixture()
def settings() -> Settings:
    """Return UTC settings with default playback cadence.

    Returns:
        A Settings instance independent of the environment.
    """
    return Settings(timezone="UTC", initial_position=100.0)


@pytest.fixture()
def roster() -> list[TaskRecord]:
    """Return a three-task roster.

    Returns:
        Tasks 1-3; task 3 has an assignee and no creation date.
    """
    return [
        TaskRecord(id=1, title="Design schema", created_at="2024-01-01"),
        TaskRecord(id=2, title="Write API", created_at="2024-01-01T08:00:00Z"),
        TaskRecord(id=3, title="Ship it", assigned_user="alice"),
    ]


@pytest.fixture()
def make_event() -> Callable[..., TaskChangeEvent]:
    """Return the TaskChangeEvent factory.

    Returns:
        build_event.
    """
    return build_event
