# newsfeed/scheduler.py
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
import pytz

from .config import CLEANUP_HOUR, TIMEZONE, UPDATE_INTERVAL_MINUTES
from .guard import RefreshGuard
from .workflow import run_cleanup, run_refresh
from .logging_setup import get_logger

logger = get_logger("newsfeed.scheduler")
scheduler = BackgroundScheduler()

# Shared by the interval job and manual triggers so they never overlap
refresh_guard = RefreshGuard()

def _job_listener(event):
    if event.exception:
        # APScheduler already captures traceback; this logs it via our logger too.
        logger.exception(
            "JOB_ERROR",
            extra={"handled": False, "job_id": event.job_id, "run_time": str(event.scheduled_run_time)}
        )
    else:
        logger.info(
            "JOB_OK",
            extra={"job_id": event.job_id, "run_time": str(event.scheduled_run_time)}
        )

def scheduled_refresh(guard: RefreshGuard = refresh_guard):
    return run_refresh(guard)

def trigger_manual_refresh(guard: RefreshGuard = refresh_guard) -> bool:
    """Run a refresh now; False when one is already in progress."""
    if guard.busy:
        logger.info("MANUAL_REFRESH_SKIPPED_BUSY", extra={"handled": True})
        return False
    return run_refresh(guard) is not None

def add_jobs():
    tz = pytz.timezone(TIMEZONE)
    scheduler.add_job(
        scheduled_refresh,
        IntervalTrigger(minutes=UPDATE_INTERVAL_MINUTES, timezone=tz),
        id="refresh_articles",
        replace_existing=True,
        coalesce=True,
        next_run_time=datetime.now(tz),  # first cycle right after startup
    )
    scheduler.add_job(
        run_cleanup,
        CronTrigger(hour=CLEANUP_HOUR, minute=0, timezone=tz),
        id="cleanup_articles",
        replace_existing=True,
    )
    scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    logger.info(f"Jobs registered: refresh_articles every {UPDATE_INTERVAL_MINUTES} min, "
                f"cleanup_articles at {CLEANUP_HOUR:02d}:00 {TIMEZONE}")

def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started")

def shutdown_scheduler(wait: bool = False):
    if scheduler.running:
        scheduler.shutdown(wait=wait)
        logger.info("APScheduler stopped")
