"""
Expiry sweep for attempts whose time ran out without a submit
"""

from datetime import timedelta

from app.core.schedular import expire_overdue_attempts
from app.models import QuizAttempt, QuizNotification
from app.schemas.auth import Identity
from app.services.quiz_attempt import QuizAttemptService
from app.utils.clock import utcnow
from conftest import create_quiz


def identity_for(user):
    return Identity(user_id=user.id, role=user.role, email=user.email)


def begin(db, quiz, student, started_ago):
    service = QuizAttemptService(db)
    attempt = service.start_attempt(quiz.id, identity_for(student))["attempt"]
    attempt.started_at = utcnow() - started_ago
    db.commit()
    return attempt


def test_overdue_attempt_with_answers_is_auto_submitted(db, course, student, lecturer):
    quiz = create_quiz(db, course, [("single_choice", ["a", "b"], "a", 2)], time_limit=1)
    attempt = begin(db, quiz, student, started_ago=timedelta(minutes=3))
    attempt.answers = {str(quiz.questions[0].id): "a"}
    db.commit()

    result = QuizAttemptService(db).expire_overdue_attempts()

    assert result == {"completed": 1, "abandoned": 0}
    db.refresh(attempt)
    assert attempt.status == "completed"
    assert float(attempt.score) == 2.0
    # Completion is stamped at the deadline, not at sweep time
    assert attempt.time_taken == 60

    notifications = db.query(QuizNotification).filter(
        QuizNotification.lecturer_id == lecturer.id
    )
    assert notifications.count() == 1


def test_overdue_attempt_without_answers_is_abandoned(db, course, student):
    quiz = create_quiz(db, course, [("single_choice", ["a", "b"], "a", 1)], time_limit=1)
    attempt = begin(db, quiz, student, started_ago=timedelta(minutes=3))

    result = QuizAttemptService(db).expire_overdue_attempts()

    assert result == {"completed": 0, "abandoned": 1}
    db.refresh(attempt)
    assert attempt.status == "abandoned"
    assert attempt.score is None


def test_attempt_within_grace_is_left_alone(db, course, student):
    quiz = create_quiz(db, course, [("single_choice", ["a", "b"], "a", 1)], time_limit=1)
    attempt = begin(db, quiz, student, started_ago=timedelta(seconds=75))

    result = QuizAttemptService(db).expire_overdue_attempts()

    assert result == {"completed": 0, "abandoned": 0}
    db.refresh(attempt)
    assert attempt.status == "in_progress"


def test_untimed_attempt_expires_when_window_closes(db, course, student):
    quiz = create_quiz(db, course, [("single_choice", ["a", "b"], "a", 1)])
    attempt = begin(db, quiz, student, started_ago=timedelta(minutes=10))

    assert QuizAttemptService(db).expire_overdue_attempts() == {
        "completed": 0,
        "abandoned": 0,
    }

    later = utcnow() + timedelta(hours=2)
    result = QuizAttemptService(db).expire_overdue_attempts(now=later)

    assert result == {"completed": 0, "abandoned": 1}
    db.refresh(attempt)
    assert attempt.status == "abandoned"


def test_scheduled_job_runs_the_sweep(db, course, student):
    quiz = create_quiz(db, course, [("single_choice", ["a", "b"], "a", 1)], time_limit=1)
    attempt = begin(db, quiz, student, started_ago=timedelta(minutes=5))

    result = expire_overdue_attempts()

    assert result == {"completed": 0, "abandoned": 1}
    db.expire_all()
    assert db.get(QuizAttempt, attempt.id).status == "abandoned"


def test_sweep_never_completes_beyond_max_attempts(db, course, student):
    quiz = create_quiz(
        db, course, [("single_choice", ["a", "b"], "a", 1)], time_limit=1, max_attempts=2
    )
    question_id = str(quiz.questions[0].id)
    service = QuizAttemptService(db)

    first = service.start_attempt(quiz.id, identity_for(student))["attempt"]
    service.submit_attempt(first.id, identity_for(student), {question_id: "a"})

    second = begin(db, quiz, student, started_ago=timedelta(minutes=3))
    second.answers = {question_id: "b"}
    quiz.max_attempts = 1
    db.commit()

    result = QuizAttemptService(db).expire_overdue_attempts()

    assert result == {"completed": 0, "abandoned": 1}
    db.refresh(second)
    assert second.status == "abandoned"
    assert second.score is None
    completed = db.query(QuizAttempt).filter(
        QuizAttempt.quiz_id == quiz.id, QuizAttempt.status == "completed"
    )
    assert completed.count() == 1
