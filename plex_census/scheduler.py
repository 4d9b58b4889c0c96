"""Scheduler pour exports automatiques."""
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
from typing import Optional
import logging

from plex_census.config import Config, get_config
from plex_census.core.exporter import Exporter

logger = logging.getLogger(__name__)

scheduler: Optional[BlockingScheduler] = None


def build_scheduler(config: Optional[Config] = None) -> BlockingScheduler:
    """Create a scheduler holding the export job for the configured cadence."""
    config = config or get_config()
    settings = config.scheduler
    cadence = settings.cadence.lower()
    timezone = settings.timezone

    new_scheduler = BlockingScheduler(timezone=timezone)

    if "hour" in cadence:
        new_scheduler.add_job(
            run_scheduled_export,
            trigger=IntervalTrigger(hours=1, timezone=timezone),
            id="hourly_export",
            replace_existing=True,
        )
    else:
        # "1 day" and anything unrecognised: daily at the configured time
        new_scheduler.add_job(
            run_scheduled_export,
            trigger=CronTrigger(hour=settings.hour, minute=settings.minute, timezone=timezone),
            id="daily_export",
            replace_existing=True,
        )
    return new_scheduler


def start_scheduler(config: Optional[Config] = None) -> None:
    """Run exports on the configured cadence until interrupted."""
    global scheduler
    config = config or get_config()
    scheduler = build_scheduler(config)
    logger.info(f"Scheduler started with cadence: {config.scheduler.cadence}, timezone: {config.scheduler.timezone}")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        stop_scheduler()


def run_scheduled_export() -> None:
    """Exécute un export planifié."""
    logger.info("Running scheduled export")
    try:
        exporter = Exporter()
        try:
            document = exporter.run()
        finally:
            exporter.close()
        logger.info(f"Scheduled export completed, {len(document.items)} items")
    except Exception as e:
        # Keep the scheduler alive, the next run may succeed
        logger.error(f"Error in scheduled export: {str(e)}")


def stop_scheduler() -> None:
    """Arrête le scheduler."""
    global scheduler
    if scheduler:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Scheduler stopped")
