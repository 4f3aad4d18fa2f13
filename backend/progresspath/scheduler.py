"""
In-process scheduler for the daily quotes refresh.
Uses APScheduler; off unless DAILY_QUOTES_SCHEDULER_ENABLED=true, since an
external cron normally calls /api/cron/daily-quotes instead.
"""
from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .pipeline import run_daily_quotes
from .settings import Settings

JOB_ID = "daily_quotes_refresh"


async def daily_quotes_job() -> None:
    """Scheduled run; trusted, so no bearer secret is needed."""
    report = await run_daily_quotes(trusted=True)
    status = "ok" if report.success else f"failed ({report.error})"
    print(f"[scheduler] daily quotes run {report.execution_id}: {status}")


class DailyQuotesScheduler:
    """Manages the daily refresh job for the application."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.enabled = settings.DAILY_QUOTES_SCHEDULER_ENABLED

    def start(self) -> bool:
        if not self.enabled:
            print("[scheduler] Daily quotes scheduler disabled")
            return False

        if not self.scheduler.running:
            self.scheduler.add_job(
                func=daily_quotes_job,
                trigger=CronTrigger(
                    hour=self.settings.DAILY_QUOTES_CRON_HOUR,
                    minute=self.settings.DAILY_QUOTES_CRON_MINUTE,
                    timezone="UTC",
                ),
                id=JOB_ID,
                name="Regenerate daily quotes",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self.scheduler.start()
            print(
                f"[scheduler] Daily quotes job scheduled at "
                f"{self.settings.DAILY_QUOTES_CRON_HOUR:02d}:{self.settings.DAILY_QUOTES_CRON_MINUTE:02d} UTC"
            )
        return True

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            print("[scheduler] Daily quotes scheduler stopped")

    async def run_now(self) -> None:
        await daily_quotes_job()
