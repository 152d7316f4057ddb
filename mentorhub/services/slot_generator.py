"""Bookable time-slot computation from a mentor's weekly availability.

Days of the week follow the Sunday=0 ... Saturday=6 convention used when
availability windows are authored. Slots are zero-padded ``HH:MM`` strings.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Any

logger = logging.getLogger(__name__)

SLOT_INCREMENT_MINUTES = 30
DEFAULT_DAY_START = time(9, 0)
DEFAULT_DAY_END = time(18, 0)
BOOKING_WINDOW_DAYS = 30


class WindowValidationError(ValueError):
    """Raised for a malformed availability window or time-of-day value."""


def parse_time_of_day(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    if not isinstance(value, str):
        raise WindowValidationError(f'Expected an HH:MM string, got {value!r}.')

    parts = value.strip().split(':')
    if (
        len(parts) not in (2, 3)
        or not all(part.isascii() and part.isdigit() for part in parts)
        or len(parts[0]) not in (1, 2)
        or not all(len(part) == 2 for part in parts[1:])
    ):
        raise WindowValidationError(f'Invalid time of day {value!r}; expected HH:MM.')

    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise WindowValidationError(f'Time of day {value!r} is out of range.')

    return time(hour, minute)


def format_slot(value: time) -> str:
    return f'{value.hour:02d}:{value.minute:02d}'


def day_of_week_for(candidate_date: date) -> int:
    return candidate_date.isoweekday() % 7


@dataclass(frozen=True)
class AvailabilityWindow:
    day_of_week: int
    start_time: time
    end_time: time

    @classmethod
    def from_row(cls, row: Mapping[str, Any] | Any) -> 'AvailabilityWindow':
        """Build a validated window from a mapping or an ORM row.

        Raises WindowValidationError when the day is missing or outside 0-6,
        when either time is malformed, or when start is not before end.
        """
        if isinstance(row, Mapping):
            day_of_week = row.get('day_of_week')
            start_value = row.get('start_time')
            end_value = row.get('end_time')
        else:
            day_of_week = getattr(row, 'day_of_week', None)
            start_value = getattr(row, 'start_time', None)
            end_value = getattr(row, 'end_time', None)

        if isinstance(day_of_week, bool) or not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
            raise WindowValidationError(f'day_of_week must be an integer from 0 to 6, got {day_of_week!r}.')

        start_time = parse_time_of_day(start_value)
        end_time = parse_time_of_day(end_value)
        if start_time >= end_time:
            raise WindowValidationError(
                f'start_time {format_slot(start_time)} must be before end_time {format_slot(end_time)}.'
            )

        return cls(day_of_week=day_of_week, start_time=start_time, end_time=end_time)


def load_windows(rows: Iterable[Mapping[str, Any] | Any]) -> list[AvailabilityWindow]:
    windows: list[AvailabilityWindow] = []
    for row in rows:
        try:
            windows.append(AvailabilityWindow.from_row(row))
        except WindowValidationError as exc:
            logger.warning('Skipping invalid availability window %r: %s', getattr(row, 'id', row), exc)
    return windows


def generate_window_slots(start_time: time, end_time: time) -> list[str]:
    """Step from start_time in 30-minute increments while before end_time.

    Crossing the hour snaps the minute to :00, so an unaligned start such as
    09:45 continues 10:00, 10:30 rather than 10:15, 10:45.
    """
    slots: list[str] = []
    hour, minute = start_time.hour, start_time.minute
    end = (end_time.hour, end_time.minute)

    while (hour, minute) < end:
        slots.append(f'{hour:02d}:{minute:02d}')
        minute += SLOT_INCREMENT_MINUTES
        if minute >= 60:
            minute = 0
            hour += 1

    return slots


def generate_slots(availability: Iterable[AvailabilityWindow], candidate_date: date) -> list[str]:
    """Return the sorted, deduplicated half-hour start times for a date.

    A mentor with no availability windows at all is offered the default
    09:00-18:00 range on every date. A mentor with windows, none of which fall
    on the candidate date's weekday, gets an empty list. Booked sessions are
    not subtracted here.
    """
    windows = list(availability)
    if not windows:
        return generate_window_slots(DEFAULT_DAY_START, DEFAULT_DAY_END)

    day_of_week = day_of_week_for(candidate_date)
    slots: set[str] = set()
    for window in windows:
        if window.day_of_week == day_of_week:
            slots.update(generate_window_slots(window.start_time, window.end_time))

    return sorted(slots)


def is_date_selectable(
    availability: Iterable[AvailabilityWindow],
    candidate_date: date,
    today: date,
) -> bool:
    if candidate_date < today or candidate_date > today + timedelta(days=BOOKING_WINDOW_DAYS):
        return False

    windows = list(availability)
    if not windows:
        return True

    return any(window.day_of_week == day_of_week_for(candidate_date) for window in windows)


def list_selectable_dates(availability: Iterable[AvailabilityWindow], today: date) -> list[tuple[date, bool]]:
    windows = list(availability)
    return [
        (today + timedelta(days=offset), is_date_selectable(windows, today + timedelta(days=offset), today))
        for offset in range(BOOKING_WINDOW_DAYS + 1)
    ]
