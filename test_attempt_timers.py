"""
Countdown/autosave job registration for attempt sessions
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.client.attempt import AttemptSession
from app.client.timers import AttemptTimers
from test_attempt_session import FakeGateway


async def started_session(time_limit):
    session = AttemptSession(FakeGateway(), {"id": 1, "time_limit": time_limit})
    await session.start()
    return session


async def test_timed_session_registers_countdown_and_autosave():
    scheduler = AsyncIOScheduler()
    session = await started_session(time_limit=1)
    timers = AttemptTimers(session, scheduler, autosave_interval=30)

    timers.start()

    countdown = scheduler.get_job(timers.countdown_job_id)
    autosave = scheduler.get_job(timers.autosave_job_id)
    assert countdown is not None
    assert autosave is not None
    assert countdown.trigger.interval.total_seconds() == 1
    assert autosave.trigger.interval.total_seconds() == 30
    assert countdown.max_instances == 1
    assert autosave.coalesce is True


async def test_untimed_session_has_no_countdown_job():
    scheduler = AsyncIOScheduler()
    session = await started_session(time_limit=None)
    timers = AttemptTimers(session, scheduler)

    timers.start()

    assert scheduler.get_job(timers.countdown_job_id) is None
    assert scheduler.get_job(timers.autosave_job_id) is not None


async def test_jobs_removed_when_session_completes():
    scheduler = AsyncIOScheduler()
    session = await started_session(time_limit=1)
    timers = AttemptTimers(session, scheduler)
    timers.start()

    await session.submit()

    assert not timers.running
    assert scheduler.get_job(timers.countdown_job_id) is None
    assert scheduler.get_job(timers.autosave_job_id) is None


async def test_leave_stops_jobs_and_stop_is_idempotent():
    scheduler = AsyncIOScheduler()
    session = await started_session(time_limit=5)
    timers = AttemptTimers(session, scheduler)
    timers.start()

    session.leave()
    timers.stop()

    assert scheduler.get_jobs() == []


async def test_finished_session_does_not_start_timers():
    scheduler = AsyncIOScheduler()
    session = await started_session(time_limit=5)
    await session.abandon()
    timers = AttemptTimers(session, scheduler)

    timers.start()

    assert scheduler.get_jobs() == []
