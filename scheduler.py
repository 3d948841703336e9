"""
Background scheduler for the monthly availability cleanup.

The job fires at midnight on the first day of every month in the configured
timezone. A failed run is logged and the next month's run stays scheduled.
"""
import logging
from time import perf_counter

from apscheduler.schedulers.background import BackgroundScheduler

from models import db
from storage import cleanup_past_month_data

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = 'monthly_availability_cleanup'


def run_cleanup_job(app):
    """Run one cleanup inside an app context; never raises"""
    start = perf_counter()
    with app.app_context():
        try:
            deleted = cleanup_past_month_data()
        except Exception:
            db.session.rollback()
            logger.exception("[CLEANUP] Scheduled cleanup failed")
            return None

    duration_ms = (perf_counter() - start) * 1000
    logger.info("[CLEANUP] Scheduled cleanup complete: deleted=%s duration_ms=%0.2f", deleted, duration_ms)
    return deleted


def start_cleanup_scheduler(app, run_on_startup=True):
    """Register the monthly cleanup job and start the scheduler"""
    timezone = app.config.get('TIMEZONE', 'UTC')
    scheduler = BackgroundScheduler(timezone=timezone)
    scheduler.add_job(
        run_cleanup_job,
        trigger='cron',
        day=1,
        hour=0,
        minute=0,
        args=[app],
        id=CLEANUP_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("[CLEANUP] Monthly cleanup scheduled (tz=%s)", timezone)

    if run_on_startup:
        logger.info("[CLEANUP] Running initial cleanup of past availability data")
        run_cleanup_job(app)

    return scheduler
