"""
Webhook Server

FastAPI app that triggers a scheduling run.

Endpoints:
- POST /webhook: run the scheduler (requires the shared secret)
- GET /health: system status, 503 when unhealthy

The secret may be sent as an X-Webhook-Secret header, a "secret" field in
the JSON body, or a ?secret= query parameter. An optional "date" field
(YYYY-MM-DD) overrides the reference date; habits are created for the day
after it.

When SCHEDULE_HOUR is set, an APScheduler cron job also runs the scheduler
every day at that hour in the configured timezone.
"""
import hmac
import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from config_loader import Settings
from habit_manager import HabitManager
from notifier import TelegramNotifier

logger = logging.getLogger(__name__)


def is_authorized(provided, expected: str) -> bool:
    """Constant-time comparison of the provided secret against the configured one."""
    if not isinstance(provided, str) or not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _error_response(status_code: int, error: str, started: float, errors: list = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "created": 0,
            "skipped": 0,
            "failed": 0,
            "errors": errors or [error],
            "executionTime": int((time.monotonic() - started) * 1000),
        },
    )


def create_app(manager: HabitManager, settings: Settings,
               notifier: Optional[TelegramNotifier] = None) -> FastAPI:
    """Build the FastAPI app around a HabitManager."""
    if not settings.webhook_secret or not settings.webhook_secret.strip():
        raise ValueError("WEBHOOK_SECRET environment variable is required for security validation")

    boot_time = time.monotonic()

    async def run_habits(reference_date=None):
        result = await run_in_threadpool(manager.create_scheduled_habits, reference_date)
        if notifier:
            await notifier.send_run_summary(result)
        return result

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if settings.schedule_hour is not None:
            scheduler = AsyncIOScheduler(timezone=settings.timezone)
            scheduler.add_job(
                run_habits,
                CronTrigger(hour=settings.schedule_hour, minute=0, timezone=settings.timezone),
                id="daily_habits",
                name=f"Daily Habits ({settings.schedule_hour:02d}:00)",
            )
            scheduler.start()
            logger.info(f"Scheduler started with timezone {settings.timezone}")
            for job in scheduler.get_jobs():
                logger.info(f"Job '{job.name}' next run: {job.next_run_time}")

        app.state.scheduler = scheduler
        yield

        if scheduler:
            scheduler.shutdown(wait=False)

    app = FastAPI(
        title="Notion Habit Scheduler",
        description="Creates tomorrow's habit entries from Notion templates",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.post("/webhook")
    async def webhook(
        request: Request,
        x_webhook_secret: Optional[str] = Header(default=None, alias="X-Webhook-Secret"),
    ):
        started = time.monotonic()
        logger.info("Received webhook request")

        raw = await request.body()
        body = {}
        if raw.strip():
            try:
                body = json.loads(raw)
            except ValueError:
                body = None

        provided = x_webhook_secret
        if provided is None and isinstance(body, dict):
            provided = body.get("secret")
        if provided is None:
            provided = request.query_params.get("secret")

        if not is_authorized(provided, settings.webhook_secret):
            logger.warning("Webhook request failed security validation")
            return _error_response(401, "Unauthorized: Invalid or missing secret", started,
                                   ["Authentication failed"])

        if not isinstance(body, dict):
            logger.warning("Invalid webhook request format")
            return _error_response(400, "Bad Request: Invalid request format", started,
                                   ["Invalid request format"])

        reference_date = None
        if body.get("date") is not None:
            try:
                reference_date = date.fromisoformat(str(body["date"]))
            except ValueError:
                return _error_response(400, "Bad Request: date must be YYYY-MM-DD", started)

        try:
            result = await run_habits(reference_date)
        except Exception as e:
            logger.exception("Webhook processing failed with unexpected error")
            return _error_response(500, str(e) or "Unknown error occurred", started)

        response = result.to_response()
        response["executionTime"] = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Webhook processing completed: {response['created']} created, "
            f"{response['skipped']} not due, {len(response['errors'])} errors"
        )
        return JSONResponse(status_code=200, content=response)

    @app.get("/health")
    async def health():
        status = await run_in_threadpool(manager.get_system_status)
        status["server"] = {
            "port": settings.port,
            "uptime": round(time.monotonic() - boot_time, 3),
        }
        status_code = 503 if status["status"] == "unhealthy" else 200
        return JSONResponse(status_code=status_code, content=status)

    @app.exception_handler(404)
    async def not_found(request: Request, exc):
        logger.warning(f"404 Not Found: {request.method} {request.url.path}")
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": "Not Found: Endpoint does not exist",
                "message": "Available endpoints: POST /webhook, GET /health",
            },
        )

    return app
