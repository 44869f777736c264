"""
Learner-side attempt session: countdown, autosave and submit behaviour
"""

import asyncio
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.client.attempt import (
    TIME_CRITICAL,
    TIME_NOMINAL,
    TIME_WARNING,
    AttemptSession,
    AttemptState,
    AttemptStateError,
    time_level,
)
from app.client.portal import PortalError
from app.services.grading import evaluate


class FakeGateway:
    """In-memory stand-in for PortalClient with a manually advanced clock."""

    def __init__(self, questions=None, resume_answers=None, remaining_seconds=None):
        self.questions = questions or []
        self.resume_answers = resume_answers
        self.remaining_seconds = remaining_seconds
        self.now = 0
        self.started_at = None
        self.created = 0
        self.persisted = []
        self.completed = []
        self.abandoned = []
        self.fail_persist = False
        self.fail_complete = 0
        self.complete_delay = 0

    async def create_attempt(self, quiz_id):
        self.created += 1
        self.started_at = self.now
        return {
            "attempt": {
                "id": 10,
                "attempt_number": 1,
                "answers": dict(self.resume_answers or {}),
            },
            "resumed": self.resume_answers is not None,
            "remaining_seconds": self.remaining_seconds,
        }

    async def persist_answers(self, attempt_id, answers):
        if self.fail_persist:
            raise PortalError(503, "Service unavailable")
        self.persisted.append(dict(answers))
        return {"attempt_id": attempt_id, "answered_count": len(answers)}

    async def complete_attempt(self, attempt_id, answers):
        if self.complete_delay:
            await asyncio.sleep(self.complete_delay)
        if self.fail_complete:
            self.fail_complete -= 1
            raise PortalError(None, "connection reset")
        self.completed.append(dict(answers))
        score, percentage = evaluate(self.questions, answers)
        return {
            "attempt_id": attempt_id,
            "status": "completed",
            "score": float(score),
            "percentage": float(percentage),
            "time_taken": self.now - self.started_at,
            "already_submitted": False,
        }

    async def abandon_attempt(self, attempt_id):
        self.abandoned.append(attempt_id)
        return {"id": attempt_id, "status": "abandoned"}


def q(qid, correct, marks=1, question_type="single_choice"):
    return SimpleNamespace(
        id=qid, question_type=question_type, correct_answer=correct, marks=Decimal(marks)
    )


async def run_ticks(session, gateway, count):
    for _ in range(count):
        gateway.now += 1
        await session.tick()


async def test_one_minute_quiz_auto_submits_exactly_once():
    gateway = FakeGateway()
    session = AttemptSession(gateway, {"id": 1, "time_limit": 1})
    finished = []
    session.on_finished(finished.append)

    await session.start()
    assert session.remaining_seconds == 60

    await run_ticks(session, gateway, 59)
    assert gateway.completed == []
    assert session.state == AttemptState.IN_PROGRESS

    await run_ticks(session, gateway, 1)
    assert len(gateway.completed) == 1
    assert session.state == AttemptState.COMPLETED
    assert session.result["time_taken"] == 60
    assert session.result["status"] == "completed"
    assert finished == [session]

    # Further ticks do nothing once the countdown has stopped
    await run_ticks(session, gateway, 30)
    assert len(gateway.completed) == 1
    assert session.remaining_seconds == 0


async def test_untimed_session_never_counts_down():
    gateway = FakeGateway()
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})

    await session.start()
    assert session.remaining_seconds is None

    await run_ticks(session, gateway, 10_000)
    assert gateway.completed == []
    assert session.state == AttemptState.IN_PROGRESS
    assert session.time_level() == TIME_NOMINAL


async def test_resume_uses_server_remaining_time_and_answers():
    gateway = FakeGateway(resume_answers={"1": "a"}, remaining_seconds=42)
    session = AttemptSession(gateway, {"id": 1, "time_limit": 5})

    await session.start()

    assert session.remaining_seconds == 42
    assert session.answers == {"1": "a"}
    assert session.is_answered(1)


async def test_double_submit_writes_once():
    gateway = FakeGateway(questions=[q(1, "a")])
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})
    await session.start()
    session.answer(1, "a")

    first = await session.submit()
    second = await session.submit()

    assert len(gateway.completed) == 1
    assert first is second
    assert first["score"] == 1.0


async def test_concurrent_submits_send_one_request():
    gateway = FakeGateway()
    gateway.complete_delay = 0.01
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})
    await session.start()

    await asyncio.gather(session.submit(), session.submit(), session.submit())

    assert len(gateway.completed) == 1
    assert session.state == AttemptState.COMPLETED


async def test_failed_submit_stays_in_progress_and_can_retry():
    gateway = FakeGateway()
    gateway.fail_complete = 1
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})
    await session.start()

    with pytest.raises(PortalError):
        await session.submit()
    assert session.state == AttemptState.IN_PROGRESS

    await session.submit()
    assert session.state == AttemptState.COMPLETED
    assert len(gateway.completed) == 1


async def test_autosave_failure_is_swallowed():
    gateway = FakeGateway()
    gateway.fail_persist = True
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})
    await session.start()
    session.answer(1, "a")

    assert await session.autosave() is False
    assert session.state == AttemptState.IN_PROGRESS
    assert session.answers == {"1": "a"}


async def test_autosave_skips_empty_and_finished_sessions():
    gateway = FakeGateway()
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})
    await session.start()

    assert await session.autosave() is False

    session.answer(2, ["b", "a"])
    assert await session.autosave() is True
    assert gateway.persisted == [{"2": "a|b"}]

    await session.submit()
    assert await session.autosave() is False
    assert len(gateway.persisted) == 1


async def test_answers_overwrite_and_clear():
    session = AttemptSession(FakeGateway(), {"id": 1, "time_limit": None})
    await session.start()

    session.answer(1, "a")
    session.answer(1, "b")
    session.answer(2, "x")
    session.answer(2, "")

    assert session.answers == {"1": "b"}
    assert session.answered_count == 1


async def test_answer_rejected_outside_in_progress():
    session = AttemptSession(FakeGateway(), {"id": 1, "time_limit": None})

    with pytest.raises(AttemptStateError):
        session.answer(1, "a")

    await session.start()
    await session.submit()

    with pytest.raises(AttemptStateError):
        session.answer(1, "a")


async def test_start_twice_is_rejected():
    gateway = FakeGateway()
    session = AttemptSession(gateway, {"id": 1, "time_limit": None})
    await session.start()

    with pytest.raises(AttemptStateError):
        await session.start()
    assert gateway.created == 1


async def test_abandon_notifies_listeners():
    gateway = FakeGateway()
    session = AttemptSession(gateway, {"id": 1, "time_limit": 10})
    finished = []
    session.on_finished(finished.append)
    await session.start()

    await session.abandon()

    assert session.state == AttemptState.ABANDONED
    assert gateway.abandoned == [10]
    assert finished == [session]
    with pytest.raises(AttemptStateError):
        await session.submit()


async def test_leave_keeps_attempt_in_progress():
    session = AttemptSession(FakeGateway(), {"id": 1, "time_limit": 10})
    left = []
    session.on_leave(left.append)
    await session.start()

    session.leave()

    assert left == [session]
    assert session.state == AttemptState.IN_PROGRESS


def test_time_levels():
    assert time_level(None) == TIME_NOMINAL
    assert time_level(301) == TIME_NOMINAL
    assert time_level(300) == TIME_WARNING
    assert time_level(60) == TIME_WARNING
    assert time_level(59) == TIME_CRITICAL
    assert time_level(0) == TIME_CRITICAL
