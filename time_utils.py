"""
Time utilities for the habit scheduler.

Converts a habit's local HH:MM window into absolute UTC instants for the
day after the run's reference date. Everything here is pure apart from
utc_now(), which is the single source of "now" for the application.

Key functions:
- calculate_time_range(): TimeRange for a habit on reference date + 1
- calculate_time_range_from_params(): same, from explicit time strings
- target_date(): the calendar day a run schedules for, in a given timezone
- format_time_range_for_display(): "HH:MM - HH:MM" for logs
"""
import re
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habit_models import HabitDefinition, TimeRange

TIME_FORMAT_REGEX = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

ReferenceDate = Union[datetime, date]


class TimeCalculationError(ValueError):
    """Base class for per-habit time calculation failures."""


class InvalidTimeFormatError(TimeCalculationError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid time format: {value}. Expected HH:MM format.")


class InvalidTimezoneError(TimeCalculationError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid timezone: {value}")


def utc_now() -> datetime:
    """
    Get current UTC time.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(dt_timezone.utc)


def get_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising InvalidTimezoneError if unknown."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidTimezoneError(name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(name) from e


def is_valid_time_format(value: str) -> bool:
    """Check a string is HH:MM (24h, single-digit hour allowed)."""
    if not isinstance(value, str):
        return False
    return TIME_FORMAT_REGEX.fullmatch(value) is not None


def is_valid_timezone(name: str) -> bool:
    try:
        get_timezone(name)
        return True
    except InvalidTimezoneError:
        return False


def parse_time_string(value: str) -> time:
    """Parse HH:MM into a time, raising InvalidTimeFormatError otherwise."""
    if not isinstance(value, str):
        raise InvalidTimeFormatError(value)
    match = TIME_FORMAT_REGEX.fullmatch(value)
    if not match:
        raise InvalidTimeFormatError(value)
    return time(int(match.group(1)), int(match.group(2)))


def to_local_date(reference: ReferenceDate, timezone: str = "UTC") -> date:
    """Calendar date of a reference in the given timezone.

    Naive datetimes are treated as UTC instants. Plain dates are already
    calendar dates and are returned unchanged.
    """
    if isinstance(reference, datetime):
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=dt_timezone.utc)
        return reference.astimezone(get_timezone(timezone)).date()
    return reference


def target_date(reference_date: Optional[ReferenceDate] = None, timezone: str = "UTC") -> date:
    """The day a run schedules for: reference date + 1 calendar day.

    Both the frequency check and the time range calculation go through
    here so they always agree on which day "tomorrow" is.
    """
    reference = reference_date if reference_date is not None else utc_now()
    return to_local_date(reference, timezone) + timedelta(days=1)


def to_utc_iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    utc_moment = moment.astimezone(dt_timezone.utc)
    return utc_moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _local_instant(day: date, clock: time, tz: ZoneInfo, fold: int = 0) -> datetime:
    # zoneinfo resolves the offset for this exact date, so DST is honoured
    local = datetime.combine(day, clock, tzinfo=tz).replace(fold=fold)
    return local.astimezone(dt_timezone.utc)


def calculate_time_range_from_params(start_time: str, end_time: str, timezone: str = "UTC",
                                     date: Optional[ReferenceDate] = None) -> TimeRange:
    """Calculate the UTC window for explicit start/end times.

    Args:
        start_time: Local start time in HH:MM format
        end_time: Local end time in HH:MM format
        timezone: IANA timezone the times are written in (e.g. "Asia/Tokyo")
        date: Reference date; the window lands on the following day (default: now)

    Returns:
        TimeRange with ISO formatted UTC start and end

    Raises:
        InvalidTimeFormatError: start_time or end_time is not HH:MM
        InvalidTimezoneError: timezone cannot be resolved
    """
    start_clock = parse_time_string(start_time)
    end_clock = parse_time_string(end_time)
    tz = get_timezone(timezone)

    day = target_date(date, timezone)
    start = _local_instant(day, start_clock, tz)
    end = _local_instant(day, end_clock, tz)

    # Window crosses midnight: end belongs to the next calendar day
    if end_clock <= start_clock:
        end = _local_instant(day + timedelta(days=1), end_clock, tz)
    elif end <= start:
        # Start sits in a spring-forward gap; take its earlier reading
        start = _local_instant(day, start_clock, tz, fold=1)

    return TimeRange(start=to_utc_iso(start), end=to_utc_iso(end))


def calculate_time_range(habit: HabitDefinition, timezone: str = "UTC",
                         reference_date: Optional[ReferenceDate] = None) -> TimeRange:
    """Calculate the UTC window for a habit on the day after reference_date."""
    return calculate_time_range_from_params(
        start_time=habit.start_time,
        end_time=habit.end_time,
        timezone=timezone,
        date=reference_date,
    )


def _parse_iso(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def get_current_time_in_timezone(timezone: str, now: Optional[datetime] = None) -> str:
    """Current wall-clock time in the timezone as HH:MM (diagnostics only)."""
    moment = now if now is not None else utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=dt_timezone.utc)
    return moment.astimezone(get_timezone(timezone)).strftime("%H:%M")


def format_time_range_for_display(time_range: TimeRange, timezone: str = "UTC") -> str:
    """Render a TimeRange as local "HH:MM - HH:MM". Seconds are dropped."""
    tz = get_timezone(timezone)
    start = _parse_iso(time_range.start).astimezone(tz)
    end = _parse_iso(time_range.end).astimezone(tz)
    return f"{start.strftime('%H:%M')} - {end.strftime('%H:%M')}"
