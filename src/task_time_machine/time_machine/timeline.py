"""Timeline index for the Time Machine scrubber.

The index is the sorted, de-duplicated set of calendar days on which
anything happened: each logged change, each task creation, plus today.
A scrub position on a 0-100 scale selects one of those days, and the
target instant is the very end of that day so every change made during it
is included.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timezone, tzinfo

from task_time_machine.observability import get_logger
from task_time_machine.time_machine.events import TaskChangeEvent, TaskRecord

logger = get_logger(__name__)

MIN_POSITION = 0.0
MAX_POSITION = 100.0

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current instant in UTC."""
    return datetime.now(timezone.utc)


def clamp_position(position: float) -> float:
    """Clamp a scrub position into [0, 100]; NaN maps to 0."""
    try:
        value = float(position)
    except (TypeError, ValueError):
        return MIN_POSITION
    if math.isnan(value):
        return MIN_POSITION
    return max(MIN_POSITION, min(MAX_POSITION, value))


def local_date(instant: datetime, zone: tzinfo) -> date:
    """Return the calendar day of an aware instant in ``zone``."""
    return instant.astimezone(zone).date()


def end_of_day(day: date, zone: tzinfo) -> datetime:
    """Return the last representable instant of ``day`` in ``zone``."""
    return datetime.combine(day, time.max, tzinfo=zone)


def short_label(day: date) -> str:
    """Format a day as 'Jan 2'."""
    return f"{day:%b} {day.day}"


def long_label(day: date) -> str:
    """Format a day as 'Tue, Jan 2, 2024'."""
    return f"{day:%a}, {day:%b} {day.day}, {day.year}"


class TimelineIndex:
    """Ordered anchor days and the position-to-instant mapping.

    Args:
        dates: Strictly increasing calendar days; must not be empty.
        zone: Timezone defining calendar days.
    """

    def __init__(self, dates: Iterable[date], zone: tzinfo = timezone.utc) -> None:
        """Store the anchor days, sorted and de-duplicated."""
        self._dates: tuple[date, ...] = tuple(sorted(set(dates)))
        if not self._dates:
            raise ValueError("TimelineIndex requires at least one date")
        self._zone = zone

    @classmethod
    def build(
        cls,
        events: Iterable[TaskChangeEvent],
        tasks: Iterable[TaskRecord],
        zone: tzinfo = timezone.utc,
        clock: Clock = utc_now,
    ) -> TimelineIndex:
        """Derive the index from an activity log and a task roster.

        Events need not be sorted. Tasks without a creation date contribute
        nothing. Today is always included, so the result is never empty.

        Args:
            events: Logged changes.
            tasks: The task roster.
            zone: Timezone defining calendar days.
            clock: Returns the current instant; injectable for tests.

        Returns:
            A new TimelineIndex.
        """
        days: set[date] = set()
        for event in events:
            days.add(local_date(event.timestamp, zone))
        for task in tasks:
            if task.created_at is not None:
                days.add(local_date(task.created_at, zone))

        now = clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        days.add(local_date(now, zone))

        index = cls(days, zone=zone)
        logger.debug(
            "Timeline index built",
            extra={"date_count": len(index), "first": index.first.isoformat(), "last": index.last.isoformat()},
        )
        return index

    def __len__(self) -> int:
        return len(self._dates)

    @property
    def dates(self) -> tuple[date, ...]:
        """Anchor days, oldest first."""
        return self._dates

    @property
    def iso_dates(self) -> list[str]:
        """Anchor days as YYYY-MM-DD strings."""
        return [day.isoformat() for day in self._dates]

    @property
    def labels(self) -> list[str]:
        """Short display labels ('Jan 2') for each anchor day."""
        return [short_label(day) for day in self._dates]

    @property
    def zone(self) -> tzinfo:
        """Timezone that defines calendar days for this index."""
        return self._zone

    @property
    def first(self) -> date:
        """Earliest day on the timeline."""
        return self._dates[0]

    @property
    def last(self) -> date:
        """Latest day on the timeline, normally today."""
        return self._dates[-1]

    def index_for_position(self, position: float) -> int:
        """Map a scrub position to an anchor index.

        ``round(position / 100 * (n - 1))`` with half-up rounding, clamped
        to ``[0, n - 1]``.
        """
        fraction = clamp_position(position) / MAX_POSITION
        index = math.floor(fraction * (len(self._dates) - 1) + 0.5)
        return max(0, min(len(self._dates) - 1, index))

    def position_to_date(self, position: float) -> date:
        """Return the anchor day selected by a scrub position."""
        return self._dates[self.index_for_position(position)]

    def position_to_instant(self, position: float) -> datetime:
        """Return the end of the anchor day selected by a scrub position."""
        return end_of_day(self.position_to_date(position), self._zone)

    def position_for_date(self, day: date) -> float:
        """Return the smallest scrub position that resolves to ``day``.

        Days that are not anchors resolve to the latest anchor on or before
        them; days before the first anchor resolve to position 0.

        Args:
            day: Calendar day to jump to.

        Returns:
            A position in [0, 100].
        """
        count = len(self._dates)
        if count == 1:
            return MIN_POSITION

        index = 0
        for candidate, anchor in enumerate(self._dates):
            if anchor <= day:
                index = candidate
            else:
                break
        if index == 0:
            return MIN_POSITION

        # Smallest position whose half-up rounding lands on ``index``
        position = (index - 0.5) / (count - 1) * MAX_POSITION
        while self.index_for_position(position) < index:
            position = math.nextafter(position, math.inf)
        return clamp_position(position)
