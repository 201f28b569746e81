"""
Telegram run summary - optional.

Sends one message after each scheduling run when TELEGRAM_BOT_TOKEN and
TELEGRAM_CHAT_ID are both configured.
"""
import logging

from telegram import Bot

from habit_models import RunResult

logger = logging.getLogger(__name__)


def build_summary_message(result: RunResult) -> str:
    """Plain-text summary of a run."""
    icon = "✅" if result.success else "⚠️"
    lines = [
        f"{icon} Habits for {result.target_date or 'unknown date'}",
        f"📅 Created: {len(result.created)}",
        f"⏭ Not due: {len(result.skipped)}",
    ]

    if result.failed:
        lines.append(f"❌ Failed: {len(result.failed)}")

    for entry in result.created:
        lines.append(f"  • {entry.title}")

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  - {error}" for error in result.errors)

    return "\n".join(lines)


class TelegramNotifier:
    def __init__(self, bot_token: str, chat_id: str):
        self.bot_token = bot_token
        self.chat_id = chat_id

    async def send_run_summary(self, result: RunResult) -> bool:
        """Send the summary. Errors are logged, never raised."""
        try:
            async with Bot(self.bot_token) as bot:
                await bot.send_message(chat_id=self.chat_id, text=build_summary_message(result))
            logger.info("Sent run summary to Telegram")
            return True

        except Exception as e:
            logger.error(f"Error sending run summary: {e}")
            return False
