"""
Data models for the habit scheduler.

Habits, run contexts and time ranges are frozen and built fresh for each
run. Result objects are filled in as the run progresses.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union

VALID_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

HABIT_TAG = "HABIT"


def normalize_frequency(tokens) -> tuple:
    """Lowercase and strip weekday tokens, dropping invalid ones and duplicates.

    Order of first appearance is kept. Non-string entries are ignored.
    """
    seen = []
    for token in tokens or ():
        if not isinstance(token, str):
            continue
        day = token.strip().lower()
        if day in VALID_WEEKDAYS and day not in seen:
            seen.append(day)
    return tuple(seen)


@dataclass(frozen=True)
class HabitDefinition:
    """A recurring habit as configured in the habits file."""
    name: str
    template_id: str
    frequency: tuple = ()
    start_time: str = ""
    end_time: str = ""
    enabled: bool = True

    def __post_init__(self):
        object.__setattr__(self, "frequency", normalize_frequency(self.frequency))

    @classmethod
    def from_dict(cls, data: dict) -> "HabitDefinition":
        """Build from the JSON shape (templateId/startTime/endTime) or snake_case keys."""
        return cls(
            name=data.get("name", ""),
            template_id=data.get("templateId", data.get("template_id", "")),
            frequency=data.get("frequency", ()),
            start_time=data.get("startTime", data.get("start_time", "")),
            end_time=data.get("endTime", data.get("end_time", "")),
            enabled=data.get("enabled", True),
        )


@dataclass(frozen=True)
class RunContext:
    reference_date: Union[datetime, date]
    timezone: str = "UTC"


@dataclass(frozen=True)
class TimeRange:
    """Absolute UTC window, ISO-8601 strings with millisecond precision."""
    start: str
    end: str

    def as_notion_date(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass
class HabitEntry:
    id: str
    title: str
    template_used: str
    time_range: str


@dataclass
class CreateResult:
    success: bool
    habit_name: str
    entry: Optional[HabitEntry] = None
    error: Optional[str] = None
    attempts: int = 1
    retryable: bool = False


@dataclass
class RunResult:
    """Outcome of one scheduling run."""
    success: bool
    target_date: Optional[str] = None
    created: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failed: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    execution_time_ms: int = 0

    def to_response(self) -> dict:
        """Webhook response body: counts plus the individual error messages."""
        return {
            "success": self.success,
            "targetDate": self.target_date,
            "created": len(self.created),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "errors": list(self.errors),
            "executionTime": self.execution_time_ms,
        }
