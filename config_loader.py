"""
Configuration Loader

Two sources of configuration:

1. Environment variables (optionally from a .env file via python-dotenv)
   NOTION_API_KEY, TIMEBOX_DATABASE_ID, WEBHOOK_SECRET are required;
   TIMEZONE, PORT, HABITS_CONFIG_PATH, TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID,
   SCHEDULE_HOUR, NOTION_MAX_RETRIES are optional.

2. Habits file - JSON array of habit objects:
   [{"name": "Morning Run", "templateId": "...", "frequency": ["monday"],
     "startTime": "07:00", "endTime": "08:00", "enabled": true}]

Invalid habits are reported and skipped; loading only fails when the file
cannot be read or holds no valid habit at all.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from habit_models import VALID_WEEKDAYS, HabitDefinition
from time_utils import is_valid_time_format, is_valid_timezone

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join("config", "habits.json")
DEFAULT_TIMEZONE = "UTC"
DEFAULT_PORT = 8080

REQUIRED_ENV_VARS = ("NOTION_API_KEY", "TIMEBOX_DATABASE_ID", "WEBHOOK_SECRET")
OPTIONAL_ENV_VARS = ("TIMEZONE", "PORT")


class ConfigError(Exception):
    """Raised when the habits file cannot be used at all."""


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class Settings:
    notion_api_key: Optional[str] = None
    timebox_database_id: Optional[str] = None
    webhook_secret: Optional[str] = None
    timezone: str = DEFAULT_TIMEZONE
    port: int = DEFAULT_PORT
    habits_config_path: str = DEFAULT_CONFIG_PATH
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    schedule_hour: Optional[int] = None
    notion_max_retries: int = 3
    raw_port: Optional[str] = None
    raw_schedule_hour: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[dict] = None, dotenv: bool = True) -> "Settings":
        """Read settings from the environment (loading .env first by default)."""
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        raw_port = env.get("PORT")
        raw_schedule_hour = env.get("SCHEDULE_HOUR")
        port = _int_or_none(raw_port)
        retries = _int_or_none(env.get("NOTION_MAX_RETRIES"))

        return cls(
            notion_api_key=env.get("NOTION_API_KEY"),
            timebox_database_id=env.get("TIMEBOX_DATABASE_ID"),
            webhook_secret=env.get("WEBHOOK_SECRET"),
            timezone=(env.get("TIMEZONE") or DEFAULT_TIMEZONE).strip(),
            port=port if port is not None else DEFAULT_PORT,
            habits_config_path=env.get("HABITS_CONFIG_PATH") or DEFAULT_CONFIG_PATH,
            telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN") or None,
            telegram_chat_id=(env.get("TELEGRAM_CHAT_ID") or "").strip() or None,
            schedule_hour=_int_or_none(raw_schedule_hour),
            notion_max_retries=retries if retries is not None and retries >= 0 else 3,
            raw_port=raw_port,
            raw_schedule_hour=raw_schedule_hour,
        )

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    def validate(self) -> tuple:
        """Check required variables and value ranges.

        Returns:
            (errors, warnings) lists of human readable messages
        """
        errors = []
        warnings = []

        values = {
            "NOTION_API_KEY": self.notion_api_key,
            "TIMEBOX_DATABASE_ID": self.timebox_database_id,
            "WEBHOOK_SECRET": self.webhook_secret,
        }
        for name in REQUIRED_ENV_VARS:
            value = values[name]
            if value is None:
                errors.append(f"Missing required environment variable: {name}")
            elif not value.strip():
                errors.append(f"Empty environment variable: {name}")

        if self.raw_port is None:
            warnings.append("Optional environment variable not set: PORT (will use default)")
        else:
            port = _int_or_none(self.raw_port)
            if port is None or port < 1 or port > 65535:
                errors.append(f"Invalid PORT environment variable: {self.raw_port} (must be 1-65535)")

        if not is_valid_timezone(self.timezone):
            errors.append(f"Invalid TIMEZONE environment variable: {self.timezone}")
        elif self.timezone == DEFAULT_TIMEZONE:
            warnings.append("TIMEZONE is UTC; habit times are interpreted as UTC")

        if self.raw_schedule_hour is not None and self.raw_schedule_hour.strip():
            hour = self.schedule_hour
            if hour is None or hour < 0 or hour > 23:
                errors.append(f"Invalid SCHEDULE_HOUR environment variable: {self.raw_schedule_hour} (must be 0-23)")

        if bool(self.telegram_bot_token) != bool(self.telegram_chat_id):
            warnings.append("Telegram summary disabled: set both TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID")

        return errors, warnings


def validate_single_habit(habit) -> dict:
    """Validate one raw habit object.

    Returns:
        {"valid": bool, "errors": [...], "warnings": [...]}
    """
    errors = []
    warnings = []

    if not isinstance(habit, dict):
        return {"valid": False, "errors": ["Must be an object"], "warnings": warnings}

    name = habit.get("name")
    if not isinstance(name, str):
        errors.append("name must be a string")
    elif not name.strip():
        errors.append("name cannot be empty")

    template_id = habit.get("templateId")
    if not isinstance(template_id, str):
        errors.append("templateId must be a string")
    elif not template_id.strip():
        errors.append("templateId cannot be empty")

    frequency = habit.get("frequency")
    if not isinstance(frequency, list):
        errors.append("frequency must be an array")
    else:
        _validate_frequency(frequency, errors, warnings)

    for field_name in ("startTime", "endTime"):
        value = habit.get(field_name)
        if not isinstance(value, str):
            errors.append(f"{field_name} must be a string")
        elif not is_valid_time_format(value):
            errors.append(f'{field_name} must be in HH:MM format (e.g., "07:30", "14:00")')

    if not isinstance(habit.get("enabled"), bool):
        errors.append("enabled must be a boolean")

    # Cross-midnight windows are fine, identical start/end is not
    if not errors:
        start_h, start_m = (int(part) for part in habit["startTime"].split(":"))
        end_h, end_m = (int(part) for part in habit["endTime"].split(":"))
        if start_h * 60 + start_m == end_h * 60 + end_m:
            errors.append(
                f"startTime ({habit['startTime']}) and endTime ({habit['endTime']}) cannot be the same"
            )

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def _validate_frequency(frequency: list, errors: list, warnings: list) -> None:
    if not frequency:
        errors.append("frequency array cannot be empty")
        return

    invalid_days = []
    duplicates = []
    seen = set()

    for day in frequency:
        if not isinstance(day, str):
            errors.append(f"frequency must contain only strings, found: {type(day).__name__}")
            continue

        normalized = day.strip().lower()
        if normalized not in VALID_WEEKDAYS:
            invalid_days.append(day)
        if normalized in seen:
            duplicates.append(day)
        else:
            seen.add(normalized)

    if invalid_days:
        errors.append(
            f"Invalid weekdays in frequency: {', '.join(invalid_days)}. "
            f"Valid options: {', '.join(VALID_WEEKDAYS)}"
        )
    if duplicates:
        warnings.append(f"Duplicate weekdays in frequency: {', '.join(duplicates)}")


def validate_habit_configuration(raw_config) -> dict:
    """Validate the whole habits document.

    Returns:
        Dictionary with valid flag, errors, warnings, valid_habits
        (HabitDefinition list) and invalid_habits (raw config + errors)
    """
    result = {
        "valid": False,
        "errors": [],
        "warnings": [],
        "valid_habits": [],
        "invalid_habits": [],
    }

    if isinstance(raw_config, dict) and "habits" in raw_config:
        raw_config = raw_config["habits"]

    if not isinstance(raw_config, list):
        result["errors"].append("Configuration must be an array of habit objects")
        return result

    if not raw_config:
        result["warnings"].append("Configuration array is empty")
        return result

    for index, raw_habit in enumerate(raw_config):
        validation = validate_single_habit(raw_habit)
        result["warnings"].extend(f"Habit {index}: {w}" for w in validation["warnings"])

        if validation["valid"]:
            result["valid_habits"].append(HabitDefinition.from_dict(raw_habit))
        else:
            result["invalid_habits"].append({"config": raw_habit, "errors": validation["errors"]})
            result["errors"].extend(f"Habit {index}: {e}" for e in validation["errors"])

    result["valid"] = bool(result["valid_habits"])
    return result


def config_file_exists(config_path: Optional[str] = None) -> bool:
    path = config_path or DEFAULT_CONFIG_PATH
    return os.path.isfile(path) and os.access(path, os.R_OK)


def load_habit_config(config_path: Optional[str] = None) -> list:
    """Load and validate habit definitions from a JSON file.

    Args:
        config_path: Path to the habits file (default: config/habits.json)

    Returns:
        List of valid HabitDefinition objects

    Raises:
        ConfigError: file missing/unreadable, invalid JSON, or no valid habits
    """
    path = config_path or DEFAULT_CONFIG_PATH
    logger.info(f"Loading habit configuration from: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_config = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}") from e
    except PermissionError as e:
        raise ConfigError(f"Permission denied reading configuration file: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in configuration file: {e}") from e

    validation = validate_habit_configuration(raw_config)

    if validation["warnings"]:
        logger.warning(f"Configuration warnings: {validation['warnings']}")
    if validation["errors"]:
        logger.error(f"Configuration errors: {validation['errors']}")

    habits = validation["valid_habits"]
    if not habits:
        raise ConfigError("No valid habits found in configuration file")

    logger.info(f"Successfully loaded {len(habits)} valid habit(s)")
    if validation["invalid_habits"]:
        logger.warning(f"Skipped {len(validation['invalid_habits'])} invalid habit(s)")

    return habits
