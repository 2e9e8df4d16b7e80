"""Coaching job scheduler using APScheduler.

Runs the batch functions on cron triggers (all hours UTC):
- WHOOP activity sync, daily at ``sync_hour_utc``
- ARIA program adjustment, daily at ``adjust_hour_utc``
- Injury risk assessment, daily at ``injury_hour_utc``
- Weekly summaries, Mondays at ``summary_hour_utc``
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import get_settings


logger = logging.getLogger(__name__)

JobFactory = Callable[[], Any]


class CoachingScheduler:
    """Manages the scheduled coaching jobs.

    Each job resolves its service lazily through a factory, so a job whose
    dependencies are not configured fails (and is logged) on its own run
    without affecting the others.

    Usage:
        scheduler = CoachingScheduler()
        scheduler.start()
        # ... app runs ...
        scheduler.stop()
    """

    def __init__(
        self,
        whoop_sync: Optional[JobFactory] = None,
        adjustment: Optional[JobFactory] = None,
        injury_risk: Optional[JobFactory] = None,
        weekly_summary: Optional[JobFactory] = None,
    ):
        from ..api import deps

        self.whoop_sync = whoop_sync or deps.get_whoop_sync_service
        self.adjustment = adjustment or deps.get_adjustment_service
        self.injury_risk = injury_risk or deps.get_injury_risk_service
        self.weekly_summary = weekly_summary or deps.get_weekly_summary_service
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._is_running and self.scheduler is not None

    def start(self) -> None:
        """Start the scheduler with the daily and weekly jobs."""
        if self._is_running:
            logger.warning("Scheduler is already running")
            return

        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduled coaching jobs are disabled in configuration")
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._add_job(self.run_whoop_sync, CronTrigger(hour=settings.sync_hour_utc, minute=0),
                      "daily_whoop_sync", "Daily WHOOP Activity Sync")
        self._add_job(self.run_adjustment, CronTrigger(hour=settings.adjust_hour_utc, minute=0),
                      "daily_program_adjustment", "Daily ARIA Program Adjustment")
        self._add_job(self.run_injury_risk, CronTrigger(hour=settings.injury_hour_utc, minute=0),
                      "daily_injury_risk", "Daily Injury Risk Assessment")
        self._add_job(
            self.run_weekly_summary,
            CronTrigger(day_of_week="mon", hour=settings.summary_hour_utc, minute=0),
            "weekly_summary",
            "Weekly ARIA Summary",
        )

        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Coaching scheduler started (sync {settings.sync_hour_utc}:00, "
            f"adjust {settings.adjust_hour_utc}:00, injury {settings.injury_hour_utc}:00, "
            f"summary Mon {settings.summary_hour_utc}:00 UTC)"
        )

    def _add_job(self, func: Callable[[], Awaitable[None]], trigger: CronTrigger, job_id: str, name: str) -> None:
        self.scheduler.add_job(
            func,
            trigger,
            id=job_id,
            name=name,
            replace_existing=True,
            max_instances=1,  # no overlapping runs
        )

    def stop(self) -> None:
        """Gracefully shutdown the scheduler."""
        if not self._is_running or self.scheduler is None:
            return

        logger.info("Shutting down coaching scheduler...")
        self.scheduler.shutdown(wait=True)
        self._is_running = False
        self.scheduler = None
        logger.info("Coaching scheduler stopped")

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def run_whoop_sync(self) -> None:
        try:
            result = await self.whoop_sync().sync_activity()
        except Exception as e:
            logger.error(f"Scheduled WHOOP sync failed: {e}")
            return
        logger.info(f"Scheduled WHOOP sync complete: {result.to_dict()}")

    async def run_adjustment(self) -> None:
        try:
            result = await self.adjustment().run()
        except Exception as e:
            logger.error(f"Scheduled program adjustment failed: {e}")
            return
        logger.info(f"Scheduled program adjustment complete: {result.total_adjustments} sessions adjusted")

    async def run_injury_risk(self) -> None:
        try:
            result = await self.injury_risk().run()
        except Exception as e:
            logger.error(f"Scheduled injury risk assessment failed: {e}")
            return
        logger.info(f"Scheduled injury risk complete: {result.assessed} assessed, {result.alerts} alerts")

    async def run_weekly_summary(self) -> None:
        try:
            result = await self.weekly_summary().run()
        except Exception as e:
            logger.error(f"Scheduled weekly summary failed: {e}")
            return
        logger.info(f"Scheduled weekly summary complete: {result.processed} processed, {result.errors} errors")

    def get_scheduler_status(self) -> Dict[str, Any]:
        """Get the current scheduler status with each job's next run."""
        status: Dict[str, Any] = {
            "is_running": self.is_running,
            "enabled": get_settings().scheduler_enabled,
            "jobs": [],
        }

        if self.is_running and self.scheduler is not None:
            for job in self.scheduler.get_jobs():
                status["jobs"].append({
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                })

        return status


# Global scheduler instance for the application
_scheduler_instance: Optional[CoachingScheduler] = None


def get_scheduler() -> CoachingScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler_instance
    if _scheduler_instance is None:
        _scheduler_instance = CoachingScheduler()
    return _scheduler_instance


def shutdown_scheduler() -> None:
    """Shutdown the global scheduler instance if running."""
    global _scheduler_instance
    if _scheduler_instance is not None:
        _scheduler_instance.stop()
        _scheduler_instance = None
