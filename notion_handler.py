"""
Notion Handler - Creates habit pages from Notion templates

Each due habit becomes one page in the timebox database, created from the
habit's template with two properties stamped on it:
- TAG (select): always "HABIT"
- EXPECTED (date): start/end of the habit window in UTC
"""
import logging
import random
import time

import httpx
from notion_client import Client
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from habit_models import HABIT_TAG, CreateResult, HabitDefinition, HabitEntry, TimeRange

logger = logging.getLogger(__name__)

TAG_PROPERTY = "TAG"
DATE_PROPERTY = "EXPECTED"

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}

STATUS_MESSAGES = {
    429: "Rate limited by Notion API",
    400: "Invalid request to Notion API",
    401: "Notion API authentication failed",
    403: "Notion API access denied",
    404: "Notion resource not found",
}


def is_retryable_error(error: Exception) -> bool:
    """Rate limits, server errors, timeouts and transport failures are transient."""
    if isinstance(error, (RequestTimeoutError, httpx.TransportError)):
        return True
    status = getattr(error, "status", None)
    return status in RETRYABLE_STATUSES


def describe_error(error: Exception) -> str:
    status = getattr(error, "status", None)
    if isinstance(error, HTTPResponseError) or isinstance(status, int):
        if status in STATUS_MESSAGES:
            return f"{STATUS_MESSAGES[status]}: {error}"
        if status in RETRYABLE_STATUSES:
            return f"Notion server error ({status}): {error}"
        return f"Notion API error ({status}): {error}"
    if isinstance(error, RequestTimeoutError):
        return f"Notion request timed out: {error}"
    return str(error) or error.__class__.__name__


class NotionHandler:
    def __init__(self, api_key: str, database_id: str, client: Client = None,
                 max_retries: int = 3, base_delay: float = 1.0):
        """Initialize Notion handler.

        Args:
            api_key: Notion API key
            database_id: Timebox database the habit pages are created in
            client: Optional pre-built client (tests pass a fake here)
            max_retries: Retries after the first attempt for transient errors
            base_delay: Seconds for the first backoff step (doubled each retry)
        """
        if not api_key and client is None:
            raise ValueError("Notion API key is required")
        if not database_id:
            raise ValueError("Timebox database ID is required")

        self.client = client or Client(auth=api_key)
        self.database_id = database_id
        self.max_retries = max_retries
        self.base_delay = base_delay

    @staticmethod
    def build_properties(time_range: TimeRange) -> dict:
        """Properties stamped on every created habit page."""
        return {
            TAG_PROPERTY: {"select": {"name": HABIT_TAG}},
            DATE_PROPERTY: {"date": time_range.as_notion_date()},
        }

    def _create_page(self, habit: HabitDefinition, time_range: TimeRange) -> dict:
        body = {
            "parent": {"database_id": self.database_id},
            "template": {"type": "template_id", "template_id": habit.template_id},
            "properties": self.build_properties(time_range),
        }
        # pages.create() drops unknown keys, so post the template body directly
        return self.client.request(path="pages", method="POST", body=body)

    def create_habit_from_template(self, habit: HabitDefinition, time_range: TimeRange) -> CreateResult:
        """Create one habit page. Never raises; failures come back in the result."""
        try:
            page = self._create_page(habit, time_range)
            entry = HabitEntry(
                id=page["id"],
                title=habit.name,
                template_used=habit.template_id,
                time_range=f"{time_range.start} - {time_range.end}",
            )
            return CreateResult(success=True, habit_name=habit.name, entry=entry)

        except Exception as e:
            message = describe_error(e)
            logger.error(f"Failed to create habit '{habit.name}': {message} (retryable={is_retryable_error(e)})")
            return CreateResult(success=False, habit_name=habit.name, error=message,
                                retryable=is_retryable_error(e))

    def create_habit_with_retry(self, habit: HabitDefinition, time_range: TimeRange) -> CreateResult:
        """Create a habit page, retrying transient failures with exponential backoff."""
        result = None

        for attempt in range(self.max_retries + 1):
            result = self.create_habit_from_template(habit, time_range)
            result.attempts = attempt + 1

            if result.success:
                if attempt > 0:
                    logger.info(f"Created habit '{habit.name}' after {attempt} retries")
                return result

            if attempt == self.max_retries or not result.retryable:
                break

            # Exponential backoff with jitter
            wait_time = self.base_delay * (2 ** attempt) + random.random()
            logger.info(
                f"Retrying '{habit.name}' in {wait_time:.1f} seconds "
                f"(attempt {attempt + 1}/{self.max_retries})"
            )
            time.sleep(wait_time)

        return result

    def test_connection(self) -> dict:
        """Retrieve the timebox database to check the key and permissions.

        Returns:
            Dictionary with success status and database title or error
        """
        try:
            db = self.client.databases.retrieve(database_id=self.database_id)
            title = db.get("title", [])
            name = title[0].get("plain_text", "Unknown") if title else "Unknown"
            return {"success": True, "database": name}

        except Exception as e:
            return {"success": False, "error": describe_error(e)}
