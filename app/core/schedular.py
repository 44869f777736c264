import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import SessionLocal
from app.services.quiz_attempt import QuizAttemptService

logger = logging.getLogger(__name__)


def expire_overdue_attempts() -> Optional[dict]:
    """
    Scheduled task closing attempts whose time ran out without a submit.
    Runs every `attempt_sweep_interval_seconds`.
    """
    db = SessionLocal()
    try:
        result = QuizAttemptService(db).expire_overdue_attempts()
        logger.debug(
            f"[{datetime.now(timezone.utc)}] Attempt sweep finished: {result}"
        )
        return result
    except Exception as e:
        logger.error(f"Error during attempt expiry sweep: {e}", exc_info=True)
        return None
    finally:
        db.close()


def start_scheduler() -> AsyncIOScheduler:
    """
    Initialize and start the APScheduler for the attempt expiry sweep.
    """
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        expire_overdue_attempts,
        trigger=IntervalTrigger(seconds=settings.attempt_sweep_interval_seconds),
        id="attempt_expiry_sweep",
        name="Close overdue quiz attempts",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        "Attempt scheduler started. Expiry sweep every "
        f"{settings.attempt_sweep_interval_seconds}s."
    )

    return scheduler


def shutdown_scheduler(scheduler: Optional[AsyncIOScheduler]):
    """
    Gracefully shutdown the scheduler.
    """
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Attempt scheduler shut down.")
