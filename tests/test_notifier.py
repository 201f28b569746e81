"""
Tests for the Telegram run summary.
"""

import asyncio

import notifier
from habit_models import HabitEntry, RunResult
from notifier import TelegramNotifier, build_summary_message


class FakeBot:
    sent = []
    fail = False

    def __init__(self, token):
        self.token = token

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def send_message(self, chat_id, text):
        if FakeBot.fail:
            raise RuntimeError("telegram down")
        FakeBot.sent.append((chat_id, text))


def sample_result(**overrides) -> RunResult:
    values = {
        "success": True,
        "target_date": "2024-01-08",
        "created": [HabitEntry(id="p1", title="Morning Run", template_used="t1", time_range="...")],
        "skipped": ["Hike"],
    }
    values.update(overrides)
    return RunResult(**values)


def test_summary_for_clean_run():
    message = build_summary_message(sample_result())

    assert message.startswith("✅ Habits for 2024-01-08")
    assert "Created: 1" in message
    assert "Not due: 1" in message
    assert "• Morning Run" in message
    assert "Errors" not in message


def test_summary_lists_errors():
    message = build_summary_message(sample_result(
        success=False,
        failed=["Broken"],
        errors=["Broken: Invalid time format: 25:00. Expected HH:MM format."],
    ))

    assert message.startswith("⚠️")
    assert "Failed: 1" in message
    assert "- Broken: Invalid time format" in message


def test_send_run_summary(monkeypatch):
    FakeBot.sent = []
    FakeBot.fail = False
    monkeypatch.setattr(notifier, "Bot", FakeBot)

    sent = asyncio.run(TelegramNotifier("token", "42").send_run_summary(sample_result()))

    assert sent is True
    assert FakeBot.sent[0][0] == "42"


def test_send_failure_is_swallowed(monkeypatch):
    FakeBot.fail = True
    monkeypatch.setattr(notifier, "Bot", FakeBot)

    sent = asyncio.run(TelegramNotifier("token", "42").send_run_summary(sample_result()))

    assert sent is False
    FakeBot.fail = False
