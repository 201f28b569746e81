"""
Main Entry Point

Serves the webhook (default) or runs a single scheduling pass.

Usage:
    python main.py                          # start the webhook server
    python main.py --run-once               # create tomorrow's habits and exit
    python main.py --run-once --date 2024-01-15
    python main.py --check                  # validate configuration and Notion access

Environment variables required:
- NOTION_API_KEY: Notion integration token
- TIMEBOX_DATABASE_ID: Notion database the habit pages are created in
- WEBHOOK_SECRET: Shared secret for POST /webhook

Optional:
- TIMEZONE: Timezone the habit times are written in (default: UTC)
- PORT: HTTP port (default: 8080)
- HABITS_CONFIG_PATH: Habit definitions file (default: config/habits.json)
- TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID: Send a summary after each run
- SCHEDULE_HOUR: Also run every day at this hour without an external cron
- NOTION_MAX_RETRIES: Retries for transient Notion errors (default: 3)
"""
import argparse
import logging
import sys
from datetime import date

import uvicorn

from config_loader import Settings
from habit_manager import HabitManager
from notifier import TelegramNotifier, build_summary_message
from notion_handler import NotionHandler
from webhook_server import create_app

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO
)
logger = logging.getLogger(__name__)


def build_manager(settings: Settings) -> HabitManager:
    notion_handler = NotionHandler(
        settings.notion_api_key,
        settings.timebox_database_id,
        max_retries=settings.notion_max_retries,
    )
    return HabitManager(notion_handler, settings.habits_config_path, settings.timezone)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create tomorrow's habit entries from Notion templates")
    parser.add_argument("--run-once", action="store_true", help="run one scheduling pass and exit")
    parser.add_argument("--date", type=date.fromisoformat, default=None,
                        help="reference date (YYYY-MM-DD); habits are created for the next day")
    parser.add_argument("--check", action="store_true", help="validate configuration and exit")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()

    # Validate configuration
    for name, value in (("NOTION_API_KEY", settings.notion_api_key),
                        ("TIMEBOX_DATABASE_ID", settings.timebox_database_id)):
        if not value:
            print(f"ERROR: {name} not set")
            return 1

    manager = build_manager(settings)

    if args.check:
        report = manager.validate_system(settings)
        for warning in report["warnings"]:
            print(f"WARNING: {warning}")
        for error in report["errors"]:
            print(f"ERROR: {error}")
        return 0 if report["valid"] else 1

    if args.run_once:
        result = manager.create_scheduled_habits(args.date)
        print(build_summary_message(result))
        return 0 if result.success else 1

    if not settings.webhook_secret:
        print("ERROR: WEBHOOK_SECRET not set")
        return 1

    notifier = None
    if settings.telegram_enabled:
        notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id)

    app = create_app(manager, settings, notifier)

    print(f"Habit scheduler starting on port {settings.port} with timezone {settings.timezone}...")
    print("Endpoints: POST /webhook, GET /health")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
