"""
Tests for template-based page creation and the retry policy.

Retryable: 429, 5xx, timeouts, transport errors.
Not retryable: 400, 401, 403, 404 and anything without a status.
"""

import httpx
import pytest

from habit_models import TimeRange
from notion_handler import NotionHandler, describe_error, is_retryable_error
from tests.conftest import FakeAPIError, FakeNotionClient, make_habit

WINDOW = TimeRange(start="2024-01-16T07:00:00.000Z", end="2024-01-16T08:00:00.000Z")


def test_build_properties():
    assert NotionHandler.build_properties(WINDOW) == {
        "TAG": {"select": {"name": "HABIT"}},
        "EXPECTED": {"date": {"start": "2024-01-16T07:00:00.000Z", "end": "2024-01-16T08:00:00.000Z"}},
    }


def test_create_posts_template_request(notion_handler, fake_client):
    habit = make_habit("Morning Run", template_id="tpl-123")

    result = notion_handler.create_habit_from_template(habit, WINDOW)

    assert result.success
    assert result.entry.id == "page-1"
    assert result.entry.title == "Morning Run"
    assert result.entry.template_used == "tpl-123"

    request = fake_client.requests[0]
    assert request["path"] == "pages"
    assert request["method"] == "POST"
    assert request["body"]["parent"] == {"database_id": "timebox-db"}
    assert request["body"]["template"] == {"type": "template_id", "template_id": "tpl-123"}
    assert request["body"]["properties"]["TAG"]["select"]["name"] == "HABIT"


def test_create_failure_is_returned_not_raised(no_sleep):
    client = FakeNotionClient(failures={"tpl-x": [FakeAPIError(404, "template missing")]})
    handler = NotionHandler("key", "db", client=client)

    result = handler.create_habit_from_template(make_habit(template_id="tpl-x"), WINDOW)

    assert not result.success
    assert result.error == "Notion resource not found: template missing"
    assert result.retryable is False


def test_retries_transient_errors_then_succeeds(no_sleep):
    client = FakeNotionClient(failures={"tpl-x": [FakeAPIError(503), FakeAPIError(429)]})
    handler = NotionHandler("key", "db", client=client, max_retries=3, base_delay=1.0)

    result = handler.create_habit_with_retry(make_habit(template_id="tpl-x"), WINDOW)

    assert result.success
    assert result.attempts == 3
    assert len(client.requests) == 3
    assert len(no_sleep) == 2
    # base * 2**attempt plus up to one second of jitter
    assert 1.0 <= no_sleep[0] < 2.0
    assert 2.0 <= no_sleep[1] < 3.0


def test_non_retryable_error_is_not_retried(no_sleep):
    client = FakeNotionClient(failures={"tpl-x": [FakeAPIError(400, "bad property")]})
    handler = NotionHandler("key", "db", client=client)

    result = handler.create_habit_with_retry(make_habit(template_id="tpl-x"), WINDOW)

    assert not result.success
    assert result.attempts == 1
    assert no_sleep == []
    assert "Invalid request to Notion API" in result.error


def test_gives_up_after_max_retries(no_sleep):
    client = FakeNotionClient(failures={"tpl-x": [FakeAPIError(500)] * 5})
    handler = NotionHandler("key", "db", client=client, max_retries=2)

    result = handler.create_habit_with_retry(make_habit(template_id="tpl-x"), WINDOW)

    assert not result.success
    assert result.attempts == 3
    assert len(client.requests) == 3
    assert "Notion server error (500)" in result.error


@pytest.mark.parametrize(
    "error,expected",
    [
        (FakeAPIError(429), True),
        (FakeAPIError(502), True),
        (FakeAPIError(401), False),
        (httpx.ConnectError("connection reset"), True),
        (ValueError("boom"), False),
    ],
)
def test_is_retryable_error(error, expected):
    assert is_retryable_error(error) is expected


def test_describe_error_plain_exception():
    assert describe_error(RuntimeError("kaput")) == "kaput"


def test_test_connection(notion_handler, fake_client):
    assert notion_handler.test_connection() == {"success": True, "database": "Timebox"}
    assert fake_client.databases.retrieved == ["timebox-db"]


def test_test_connection_failure():
    handler = NotionHandler("key", "db", client=FakeNotionClient(db_error=FakeAPIError(401, "bad token")))
    result = handler.test_connection()
    assert result["success"] is False
    assert "authentication failed" in result["error"]


def test_requires_database_id():
    with pytest.raises(ValueError):
        NotionHandler("key", "", client=FakeNotionClient())
