"""
Scheduling helpers - decide which habits are due.

A run always schedules for the day after its reference date, so a nightly
trigger prepares tomorrow's habits. Frequency is a subset of the seven
weekday names; anything else in a habit's frequency is ignored here
(rejecting it is the config loader's job).
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union

from habit_models import VALID_WEEKDAYS, HabitDefinition, normalize_frequency
from time_utils import target_date, to_local_date, utc_now

WORKING_DAYS = frozenset(VALID_WEEKDAYS[:5])
WEEKEND_DAYS = frozenset(VALID_WEEKDAYS[5:])

ReferenceDate = Union[datetime, date]


def get_day_name(day: date) -> str:
    """Lowercase English weekday name, e.g. "monday"."""
    return VALID_WEEKDAYS[day.weekday()]


def is_valid_frequency(frequency) -> bool:
    """True if frequency is a non-empty list of valid weekday names (any case)."""
    if not isinstance(frequency, (list, tuple)) or not frequency:
        return False
    return all(
        isinstance(day, str) and day.strip().lower() in VALID_WEEKDAYS
        for day in frequency
    )


def is_due_tomorrow(habit: HabitDefinition, reference_date: Optional[ReferenceDate] = None,
                    timezone: Optional[str] = None) -> bool:
    """Check whether a habit should be created on this run for the next day.

    Args:
        habit: Habit to check
        reference_date: Day the run happens (default: now)
        timezone: If given, datetimes are converted to this zone before
                  taking their calendar date

    Returns:
        True if the habit is enabled and the day after reference_date is
        one of its scheduled weekdays
    """
    if not habit.enabled:
        return False

    tomorrow = target_date(reference_date, timezone or "UTC")
    return get_day_name(tomorrow) in normalize_frequency(habit.frequency)


def due_habits(habits: list, reference_date: Optional[ReferenceDate] = None,
               timezone: Optional[str] = None) -> list:
    """Filter habits down to those due tomorrow, keeping input order."""
    if reference_date is None:
        reference_date = utc_now()
    return [habit for habit in habits if is_due_tomorrow(habit, reference_date, timezone)]


def get_scheduled_weekdays(habit: HabitDefinition) -> list:
    return list(normalize_frequency(habit.frequency))


def is_scheduled_for_weekday(habit: HabitDefinition, weekday: str) -> bool:
    return weekday.strip().lower() in get_scheduled_weekdays(habit)


def is_daily(habit: HabitDefinition) -> bool:
    return len(get_scheduled_weekdays(habit)) == len(VALID_WEEKDAYS)


def is_weekdays_only(habit: HabitDefinition) -> bool:
    return frozenset(get_scheduled_weekdays(habit)) == WORKING_DAYS


def is_weekends_only(habit: HabitDefinition) -> bool:
    return frozenset(get_scheduled_weekdays(habit)) == WEEKEND_DAYS


def next_due_date(habit: HabitDefinition, from_date: Optional[ReferenceDate] = None,
                  timezone: Optional[str] = None) -> Optional[date]:
    """Find the next day the habit occurs after from_date.

    Probes the run dates from_date .. from_date + 6 with is_due_tomorrow, so
    the returned occurrence is between one and seven days ahead. A week is
    enough because every frequency is a subset of a 7-day cycle.

    Returns:
        The occurrence date, or None if the habit is disabled or has no
        valid weekdays
    """
    if not habit.enabled:
        return None

    start = to_local_date(from_date if from_date is not None else utc_now(), timezone or "UTC")
    for offset in range(7):
        run_day = start + timedelta(days=offset)
        if is_due_tomorrow(habit, run_day):
            return run_day + timedelta(days=1)

    return None


def describe_frequency(habit: HabitDefinition) -> str:
    """Short label for logs and status output."""
    if is_daily(habit):
        return "daily"
    if is_weekdays_only(habit):
        return "weekdays"
    if is_weekends_only(habit):
        return "weekends"
    days = get_scheduled_weekdays(habit)
    if not days:
        return "never"
    ordered = [day for day in VALID_WEEKDAYS if day in days]
    return ", ".join(day[:3] for day in ordered)
