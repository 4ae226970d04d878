import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from elearning.core.config import settings
from elearning.core.database import SessionLocal
from elearning.services.enrollment import EnrollmentService

logger = logging.getLogger(__name__)


def suspend_expired_enrollments():
    """
    Scheduled task that suspends active enrollments past their `expires_at`.
    Runs every `enrollment_expiry_check_minutes`.
    """
    db = SessionLocal()
    try:
        suspended = EnrollmentService(db).suspend_expired()
        logger.info(
            f"[{datetime.now(timezone.utc)}] Enrollment expiry check completed. "
            f"Suspended {suspended} enrollments."
        )
    except Exception as e:
        logger.error(f"Error during enrollment expiry check: {e}")
    finally:
        db.close()


def start_scheduler():
    """
    Initialize and start the APScheduler for enrollment expiry.
    """
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        suspend_expired_enrollments,
        trigger=IntervalTrigger(minutes=settings.enrollment_expiry_check_minutes),
        id="enrollment_expiry",
        name="Suspend expired enrollments",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        f"Enrollment scheduler started. Expiry check every "
        f"{settings.enrollment_expiry_check_minutes} minutes."
    )

    return scheduler


def shutdown_scheduler(scheduler: AsyncIOScheduler):
    """
    Gracefully shutdown the scheduler.
    """
    if scheduler:
        scheduler.shutdown()
        logger.info("Enrollment scheduler shut down.")
