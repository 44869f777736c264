import logging
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.client.attempt import AttemptSession
from app.core.config import settings

logger = logging.getLogger(__name__)


class AttemptTimers:
    """
    Countdown and autosave jobs for one attempt session.

    The jobs run on the caller's scheduler; starting and shutting down the
    scheduler itself is left to the caller.
    """

    def __init__(
        self,
        session: AttemptSession,
        scheduler: AsyncIOScheduler,
        autosave_interval: Optional[int] = None,
    ):
        self.session = session
        self.scheduler = scheduler
        self.autosave_interval = (
            autosave_interval or settings.attempt_autosave_interval_seconds
        )
        self._job_ids: List[str] = []

        session.on_finished(lambda _: self.stop())
        session.on_leave(lambda _: self.stop())

    @property
    def countdown_job_id(self) -> str:
        return f"attempt-{self.session.attempt_id}-countdown"

    @property
    def autosave_job_id(self) -> str:
        return f"attempt-{self.session.attempt_id}-autosave"

    @property
    def running(self) -> bool:
        return bool(self._job_ids)

    def start(self) -> None:
        if self.running or self.session.is_finished:
            return

        if self.session.is_timed:
            self.scheduler.add_job(
                self.session.tick,
                trigger=IntervalTrigger(seconds=1),
                id=self.countdown_job_id,
                name=f"Countdown for attempt {self.session.attempt_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._job_ids.append(self.countdown_job_id)

        self.scheduler.add_job(
            self.session.autosave,
            trigger=IntervalTrigger(seconds=self.autosave_interval),
            id=self.autosave_job_id,
            name=f"Autosave for attempt {self.session.attempt_id}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._job_ids.append(self.autosave_job_id)

        logger.info(
            f"Timers started for attempt {self.session.attempt_id}: {self._job_ids}"
        )

    def stop(self) -> None:
        """Remove this session's jobs. Safe to call more than once."""
        for job_id in self._job_ids:
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
        if self._job_ids:
            logger.info(f"Timers stopped for attempt {self.session.attempt_id}")
        self._job_ids = []
