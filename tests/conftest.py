"""
Test configuration and fixtures for the habit scheduler tests.

Provides:
- Habit factory with sensible defaults
- Fake Notion client that records template requests and can fail on demand
- Habits file writer backed by pytest's tmp_path
"""

import json
import logging
import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from habit_models import HabitDefinition
from notion_handler import NotionHandler

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]
EVERY_DAY = WEEKDAYS + ["saturday", "sunday"]


class FakeAPIError(Exception):
    """Stands in for notion_client's HTTP errors, which carry a status code."""

    def __init__(self, status: int, message: str = "request failed"):
        super().__init__(message)
        self.status = status


class FakeDatabases:
    def __init__(self, error: Exception = None):
        self.error = error
        self.retrieved = []

    def retrieve(self, database_id: str) -> dict:
        self.retrieved.append(database_id)
        if self.error:
            raise self.error
        return {"id": database_id, "title": [{"plain_text": "Timebox"}]}


class FakeNotionClient:
    """Records POST bodies; raises queued errors per template id first."""

    def __init__(self, failures: dict = None, db_error: Exception = None):
        self.failures = {key: list(errors) for key, errors in (failures or {}).items()}
        self.requests = []
        self.databases = FakeDatabases(db_error)

    def request(self, path: str, method: str, query=None, body=None, auth=None) -> dict:
        self.requests.append({"path": path, "method": method, "body": body})
        template_id = body["template"]["template_id"]
        queued = self.failures.get(template_id)
        if queued:
            raise queued.pop(0)
        return {"id": f"page-{len(self.requests)}", "object": "page"}


def make_habit(name: str = "Morning Run", **overrides) -> HabitDefinition:
    values = {
        "name": name,
        "template_id": f"tpl-{name.lower().replace(' ', '-')}",
        "frequency": list(WEEKDAYS),
        "start_time": "07:00",
        "end_time": "08:00",
        "enabled": True,
    }
    values.update(overrides)
    return HabitDefinition(**values)


def raw_habit(name: str = "Morning Run", **overrides) -> dict:
    values = {
        "name": name,
        "templateId": f"tpl-{str(name).lower().replace(' ', '-')}",
        "frequency": list(WEEKDAYS),
        "startTime": "07:00",
        "endTime": "08:00",
        "enabled": True,
    }
    values.update(overrides)
    return values


@pytest.fixture
def fake_client() -> FakeNotionClient:
    return FakeNotionClient()


@pytest.fixture
def no_sleep(monkeypatch) -> list:
    """Replace backoff sleeps with a recorder."""
    delays = []
    monkeypatch.setattr("notion_handler.time.sleep", delays.append)
    return delays


@pytest.fixture
def notion_handler(fake_client: FakeNotionClient, no_sleep) -> NotionHandler:
    return NotionHandler("secret-key", "timebox-db", client=fake_client, base_delay=0.01)


@pytest.fixture
def write_habits(tmp_path):
    """Write a habits document and return its path."""

    def _write(document, filename: str = "habits.json") -> str:
        path = tmp_path / filename
        if isinstance(document, str):
            path.write_text(document, encoding="utf-8")
        else:
            path.write_text(json.dumps(document), encoding="utf-8")
        return str(path)

    return _write
