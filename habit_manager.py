"""
Habit Manager

Runs one scheduling pass:
1. Load habit definitions from the habits file
2. Keep the habits due tomorrow (relative to the reference date)
3. Calculate each due habit's UTC window
4. Create a Notion page from the habit's template

A bad time string or Notion failure only fails that one habit; the rest
of the run carries on and the error text is reported. An unknown run
timezone or an unusable habits file fails the whole run up front.
"""
import logging
import time
from typing import Optional

from config_loader import ConfigError, load_habit_config
from habit_models import RunContext, RunResult
from notion_handler import NotionHandler
from scheduling import describe_frequency, due_habits
from time_utils import (
    TimeCalculationError,
    calculate_time_range,
    format_time_range_for_display,
    get_current_time_in_timezone,
    get_timezone,
    is_valid_timezone,
    target_date,
    to_utc_iso,
    utc_now,
)

logger = logging.getLogger(__name__)


class HabitManager:
    """Composes config loading, scheduling and the Notion template sink."""

    def __init__(self, notion_handler: NotionHandler, config_path: Optional[str] = None,
                 timezone: str = "UTC"):
        self.notion_handler = notion_handler
        self.config_path = config_path
        self.timezone = timezone

    def load_habits(self) -> list:
        habits = load_habit_config(self.config_path)
        if not habits:
            logger.warning("No habits found in configuration file")
        return habits

    def create_scheduled_habits(self, reference_date=None) -> RunResult:
        """Create tomorrow's habit pages.

        Args:
            reference_date: Day the run is for (default: now). Habits are
                            created for the following day.

        Returns:
            RunResult with created entries, not-due habit names, failed habit
            names and per-habit error messages
        """
        started = time.monotonic()
        if reference_date is None:
            reference_date = utc_now()
        context = RunContext(reference_date=reference_date, timezone=self.timezone)
        result = RunResult(success=True)

        logger.info("Starting habit creation process...")

        try:
            get_timezone(context.timezone)
            result.target_date = target_date(context.reference_date, context.timezone).isoformat()
            habits = self.load_habits()
        except (ConfigError, TimeCalculationError) as e:
            logger.error(f"Habit run aborted: {e}")
            result.success = False
            result.errors.append(str(e))
            result.execution_time_ms = self._elapsed_ms(started)
            return result

        logger.info(f"Loaded {len(habits)} habit configuration(s)")

        due = due_habits(habits, context.reference_date, context.timezone)
        result.skipped = [habit.name for habit in habits if habit not in due]
        logger.info(f"Found {len(due)} habit(s) due on {result.target_date}")

        for habit in due:
            logger.info(f"Processing habit: {habit.name} ({describe_frequency(habit)})")

            try:
                time_range = calculate_time_range(habit, context.timezone, context.reference_date)
            except TimeCalculationError as e:
                logger.error(f"Skipping habit '{habit.name}': {e}")
                result.failed.append(habit.name)
                result.errors.append(f"{habit.name}: {e}")
                continue

            logger.info(
                f"Window for {habit.name}: "
                f"{format_time_range_for_display(time_range, context.timezone)} ({context.timezone})"
            )

            outcome = self.notion_handler.create_habit_with_retry(habit, time_range)
            if outcome.success:
                logger.info(f"Created habit: {habit.name}")
                result.created.append(outcome.entry)
            else:
                logger.error(f"Failed to create habit: {habit.name} - {outcome.error}")
                result.failed.append(habit.name)
                result.errors.append(f"{habit.name}: {outcome.error}")

        result.success = not result.errors
        result.execution_time_ms = self._elapsed_ms(started)
        self.log_summary(result)
        return result

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def log_summary(self, result: RunResult) -> None:
        lines = [
            "=== Habit Creation Summary ===",
            f"Status: {'SUCCESS' if result.success else 'PARTIAL_FAILURE'}",
            f"Target date: {result.target_date}",
            f"Execution time: {result.execution_time_ms}ms",
            f"Created: {len(result.created)} habit(s)",
            f"Not due: {len(result.skipped)} habit(s)",
            f"Failed: {len(result.failed)} habit(s)",
        ]
        lines.extend(f"  + {entry.title} ({entry.time_range})" for entry in result.created)
        lines.extend(f"  ! {error}" for error in result.errors)
        logger.info("\n".join(lines))

    def validate_system(self, settings=None) -> dict:
        """Check Notion connectivity, the habits file and (optionally) env settings.

        Returns:
            {"valid": bool, "errors": [...], "warnings": [...]}
        """
        errors = []
        warnings = []

        connection = self.notion_handler.test_connection()
        if connection["success"]:
            logger.info(f"Notion connected: {connection['database']}")
        else:
            errors.append(f"Notion API validation failed: {connection['error']}")

        try:
            habits = self.load_habits()
            logger.info(f"Configuration validated: {len(habits)} habit(s) loaded")
        except ConfigError as e:
            errors.append(str(e))

        if settings is not None:
            env_errors, env_warnings = settings.validate()
            errors.extend(env_errors)
            warnings.extend(env_warnings)
        elif not is_valid_timezone(self.timezone):
            errors.append(f"Invalid timezone: {self.timezone}")

        valid = not errors
        logger.info(f"System validation {'PASSED' if valid else 'FAILED'}")
        return {"valid": valid, "errors": errors, "warnings": warnings}

    def get_system_status(self, now=None) -> dict:
        """Health snapshot for the /health endpoint.

        healthy: everything works; degraded: Notion or the habits file is
        usable; unhealthy: neither is.
        """
        now = now or utc_now()
        errors = []
        configuration_loaded = False
        habits_count = 0
        due_count = 0

        connection = self.notion_handler.test_connection()
        notion_connected = connection["success"]
        if not notion_connected:
            errors.append(f"Notion: {connection['error']}")

        try:
            habits = self.load_habits()
            configuration_loaded = True
            habits_count = len(habits)
            due_count = len(due_habits(habits, now, self.timezone))
        except (ConfigError, TimeCalculationError) as e:
            errors.append(f"Configuration: {e}")

        try:
            current_time = get_current_time_in_timezone(self.timezone, now)
        except TimeCalculationError as e:
            current_time = None
            errors.append(f"Timezone: {e}")

        if not errors:
            status = "healthy"
        elif configuration_loaded or notion_connected:
            status = "degraded"
        else:
            status = "unhealthy"

        return {
            "status": status,
            "timestamp": to_utc_iso(now),
            "timezone": self.timezone,
            "current_time": current_time,
            "metrics": {
                "configuration_loaded": configuration_loaded,
                "notion_connected": notion_connected,
                "habits_count": habits_count,
                "due_tomorrow_count": due_count,
            },
            "errors": errors,
        }
