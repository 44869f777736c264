"""
Learner-side state machine for a single quiz attempt.

NOT_STARTED -> IN_PROGRESS -> COMPLETED | ABANDONED

The session keeps the working copy of the answers and the local countdown.
All writes (autosave, submit, abandon) go through one asyncio.Lock so they
reach the server one at a time, and a submit in flight blocks any other.
The server stays authoritative: it grades, and it rejects writes to an
attempt that is no longer in progress.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from app.client.portal import PortalError
from app.core.config import settings
from app.services.grading import encode_answer

logger = logging.getLogger(__name__)

TIME_NOMINAL = "nominal"
TIME_WARNING = "warning"
TIME_CRITICAL = "critical"


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class AttemptStateError(Exception):
    pass


def time_level(remaining_seconds: Optional[int]) -> str:
    """Presentation level of the countdown; untimed attempts are always nominal."""
    if remaining_seconds is None or remaining_seconds > settings.countdown_warning_seconds:
        return TIME_NOMINAL
    if remaining_seconds >= settings.countdown_critical_seconds:
        return TIME_WARNING
    return TIME_CRITICAL


class AttemptSession:
    def __init__(self, gateway, quiz: Mapping[str, Any]):
        self.gateway = gateway
        self.quiz = quiz

        self.state = AttemptState.NOT_STARTED
        self.attempt_id: Optional[int] = None
        self.attempt_number: Optional[int] = None
        self.answers: Dict[str, str] = {}
        self.remaining_seconds: Optional[int] = None
        self.result: Optional[Dict[str, Any]] = None

        self._lock = asyncio.Lock()
        self._submitting = False
        self._auto_submitted = False
        self._finished_listeners: List[Callable[["AttemptSession"], None]] = []
        self._leave_listeners: List[Callable[["AttemptSession"], None]] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def quiz_id(self) -> int:
        return self.quiz["id"]

    @property
    def is_timed(self) -> bool:
        return bool(self.quiz.get("time_limit"))

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def is_finished(self) -> bool:
        return self.state in (AttemptState.COMPLETED, AttemptState.ABANDONED)

    def is_answered(self, question_id) -> bool:
        return str(question_id) in self.answers

    def time_level(self) -> str:
        return time_level(self.remaining_seconds)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_finished(self, callback: Callable[["AttemptSession"], None]) -> None:
        self._finished_listeners.append(callback)

    def on_leave(self, callback: Callable[["AttemptSession"], None]) -> None:
        self._leave_listeners.append(callback)

    def _notify(self, listeners) -> None:
        for callback in list(listeners):
            try:
                callback(self)
            except Exception:
                logger.exception(f"Attempt {self.attempt_id}: listener failed")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self) -> Dict[str, Any]:
        """Create the attempt on the server, or resume the active one."""
        if self.state != AttemptState.NOT_STARTED:
            raise AttemptStateError(f"Cannot start an attempt that is {self.state.value}")

        data = await self.gateway.create_attempt(self.quiz_id)
        attempt = data["attempt"]

        self.attempt_id = attempt["id"]
        self.attempt_number = attempt.get("attempt_number")
        self.answers = dict(attempt.get("answers") or {})

        if self.is_timed:
            remaining = data.get("remaining_seconds")
            self.remaining_seconds = (
                int(remaining) if remaining is not None else self.quiz["time_limit"] * 60
            )
        else:
            self.remaining_seconds = None

        self.state = AttemptState.IN_PROGRESS
        logger.info(
            f"Attempt {self.attempt_id} {'resumed' if data.get('resumed') else 'started'} "
            f"for quiz {self.quiz_id}"
        )
        return data

    def answer(self, question_id, value: Any) -> None:
        """Overwrite the local answer; an empty value clears it."""
        if self.state != AttemptState.IN_PROGRESS:
            raise AttemptStateError("Answers can only change while the attempt is in progress")

        encoded = encode_answer(value)
        if encoded:
            self.answers[str(question_id)] = encoded
        else:
            self.answers.pop(str(question_id), None)

    async def autosave(self) -> bool:
        """
        Push the current answers to the server. Failures are logged and
        dropped; the next autosave or the submit carries the answers anyway.
        """
        if self.state != AttemptState.IN_PROGRESS or not self.answers:
            return False

        async with self._lock:
            if self.state != AttemptState.IN_PROGRESS or self._submitting:
                return False
            snapshot = dict(self.answers)
            try:
                await self.gateway.persist_answers(self.attempt_id, snapshot)
            except PortalError as e:
                logger.warning(f"Attempt {self.attempt_id}: autosave failed: {e}")
                return False

        logger.debug(f"Attempt {self.attempt_id}: autosaved {len(snapshot)} answers")
        return True

    async def tick(self) -> bool:
        """
        Advance the countdown by one second. Returns True when this tick
        triggered the automatic submit.
        """
        if self.state != AttemptState.IN_PROGRESS or self.remaining_seconds is None:
            return False

        if self.remaining_seconds > 0:
            self.remaining_seconds -= 1

        if self.remaining_seconds > 0 or self._auto_submitted:
            return False

        self._auto_submitted = True
        logger.info(f"Attempt {self.attempt_id}: time is up, submitting")
        try:
            await self.submit()
        except PortalError as e:
            logger.error(f"Attempt {self.attempt_id}: automatic submit failed: {e}")
        return True

    async def submit(self) -> Optional[Dict[str, Any]]:
        """
        Submit the attempt once. Calling again while a submit is in flight,
        or after completion, returns the existing result without a request.
        A failed submit leaves the attempt in progress so it can be retried.
        """
        if self.state == AttemptState.COMPLETED or self._submitting:
            return self.result
        if self.state != AttemptState.IN_PROGRESS:
            raise AttemptStateError(f"Cannot submit an attempt that is {self.state.value}")

        self._submitting = True
        try:
            async with self._lock:
                result = await self.gateway.complete_attempt(
                    self.attempt_id, dict(self.answers)
                )
        finally:
            self._submitting = False

        self.result = result
        self.state = AttemptState.COMPLETED
        logger.info(
            f"Attempt {self.attempt_id} submitted: score={result.get('score')} "
            f"percentage={result.get('percentage')}"
        )
        self._notify(self._finished_listeners)
        return result

    async def abandon(self) -> None:
        if self.state != AttemptState.IN_PROGRESS or self._submitting:
            raise AttemptStateError(f"Cannot abandon an attempt that is {self.state.value}")

        async with self._lock:
            await self.gateway.abandon_attempt(self.attempt_id)

        self.state = AttemptState.ABANDONED
        logger.info(f"Attempt {self.attempt_id} abandoned")
        self._notify(self._finished_listeners)

    def leave(self) -> None:
        """Stop local timers. The attempt stays in progress and resumable."""
        self._notify(self._leave_listeners)
