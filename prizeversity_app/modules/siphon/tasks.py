"""Scheduled siphon maintenance jobs."""
import logging

from flask import Flask

from ...extensions import scheduler
from .services.siphon_service import SiphonService

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'siphon_expiry_sweep'
PURGE_JOB_ID = 'siphon_retention_purge'


def run_expiry_sweep():
    """Job executed by the scheduler: expire lapsed siphon requests."""
    with scheduler.app.app_context():
        SiphonService.expire_due_siphons()


def run_retention_purge():
    with scheduler.app.app_context():
        try:
            SiphonService.purge_resolved_siphons()
        except Exception as e:
            logger.error(f"Siphon retention purge failed: {e}")


def init_scheduler(app: Flask) -> None:
    """Register the sweep and purge jobs with APScheduler."""
    interval = max(1, int(app.config.get('SIPHON_SWEEP_INTERVAL_MINUTES', 5)))

    if not scheduler.get_job(SWEEP_JOB_ID):
        scheduler.add_job(
            id=SWEEP_JOB_ID,
            func=run_expiry_sweep,
            trigger='interval',
            minutes=interval,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Siphon expiry sweep registered every {interval} minutes.")

    if not scheduler.get_job(PURGE_JOB_ID):
        scheduler.add_job(
            id=PURGE_JOB_ID,
            func=run_retention_purge,
            trigger='cron',
            hour=3,
            minute=0,
            replace_existing=True,
        )
        logger.info("Siphon retention purge registered at 03:00.")
