"""Service settings for task-time-machine.

Settings use the TIME_MACHINE_ prefix and cover:
- Playback cadence and step sizes
- Baseline defaults for tasks with no recorded creation state
- The timezone that defines a "calendar day" on the timeline
- The activity feed client
- Logging
"""

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for task-time-machine.

    Environment variable prefix: TIME_MACHINE_
    """

    service_name: str = "task-time-machine"

    # -------------------------------------------------------------------------
    # Playback
    # -------------------------------------------------------------------------

    playback_interval_ms: int = Field(
        default=150,
        gt=0,
        description="Milliseconds between autoplay ticks.",
    )
    playback_increment: float = Field(
        default=2.0,
        gt=0,
        description="Scrub position advance per autoplay tick (0-100 scale).",
    )
    seek_step: float = Field(
        default=5.0,
        gt=0,
        description="Scrub position change for the rewind / fast-forward controls.",
    )
    initial_position: float = Field(
        default=100.0,
        ge=0,
        le=100,
        description="Scrub position a freshly opened view starts at. 100 is 'now'.",
    )

    # -------------------------------------------------------------------------
    # Baseline defaults
    # -------------------------------------------------------------------------

    default_status: str = Field(default="todo", description="Assumed status before any event.")
    default_priority: str = Field(default="medium", description="Assumed priority before any event.")
    unassigned_label: str = Field(
        default="Unassigned",
        description="Assignee shown for tasks whose roster entry has no assignee.",
    )

    # -------------------------------------------------------------------------
    # Calendar
    # -------------------------------------------------------------------------

    timezone: str = Field(
        default="UTC",
        description="IANA zone that defines calendar days for the timeline and end-of-day instants.",
    )

    # -------------------------------------------------------------------------
    # Activity feed client
    # -------------------------------------------------------------------------

    activity_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the task service.",
    )
    activity_path_template: str = Field(
        default="/api/tasks/{task_id}/activity-logs",
        description="Path of one task's activity log; {task_id} is substituted.",
    )
    feed_concurrency: int = Field(
        default=8,
        ge=1,
        description="Maximum number of per-task activity requests in flight.",
    )
    feed_timeout_s: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for a single activity request.",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(default="INFO", description="Root level for task_time_machine loggers.")
    log_json: bool = Field(default=False, description="Emit one JSON object per log line.")

    model_config = SettingsConfigDict(
        env_prefix="TIME_MACHINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def zone(self) -> ZoneInfo:
        """Return the configured timezone as a ZoneInfo."""
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings instance."""
    return Settings()
