"""
Shared pytest fixtures.

The app runs against an in-memory SQLite database with the scheduler off and
the rate limiter on in-process storage. These variables must be set before
anything under app/ is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "memory://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["ATTEMPT_GRACE_SECONDS"] = "30"

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.core.hasher import PasswordHelper
from app.core.limiter import limiter
from app.core.security import jwt_manager
from app.models import (
    Course,
    CourseEnrollment,
    Quiz,
    QuizQuestion,
    User,
)
from app.services.grading import encode_answer
from app.utils.clock import utcnow
from main import app


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    limiter.reset()

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    # No context manager: lifespan (admin seeding, scheduler) stays off
    return TestClient(app)


def create_user(db, role: str, email: str, full_name: str = None, password: str = "Secret@123"):
    user = User(
        email=email,
        full_name=full_name or email.split("@")[0].title(),
        hashed_password=PasswordHelper.hash_password(password),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {jwt_manager.create_access_token(user)}"}


def create_quiz(
    db,
    course,
    questions,
    time_limit=None,
    max_attempts=None,
    start_offset=timedelta(hours=-1),
    end_offset=timedelta(hours=1),
    title="Unit Quiz",
):
    """
    questions: list of (question_type, options, correct_answer, marks).
    Order numbers follow the list order.
    """
    now = utcnow()
    quiz = Quiz(
        course_id=course.id,
        title=title,
        time_limit=time_limit,
        max_attempts=max_attempts,
        total_marks=sum((Decimal(str(q[3])) for q in questions), Decimal("0")),
        start_time=now + start_offset,
        end_time=now + end_offset,
        is_active=True,
        created_by=course.lecturer_id,
    )
    db.add(quiz)
    db.flush()

    for index, (question_type, options, correct, marks) in enumerate(questions, start=1):
        db.add(
            QuizQuestion(
                quiz_id=quiz.id,
                question_text=f"Question {index}",
                question_type=question_type,
                options=options,
                correct_answer=encode_answer(correct),
                marks=Decimal(str(marks)),
                order_number=index,
            )
        )

    db.commit()
    db.refresh(quiz)
    return quiz


@pytest.fixture()
def lecturer(db):
    return create_user(db, "lecturer", "lecturer@college.edu", "Dr. Grace Hopper")


@pytest.fixture()
def student(db):
    return create_user(db, "student", "student@college.edu", "Ada Student")


@pytest.fixture()
def admin(db):
    return create_user(db, "admin", "admin@college.edu", "Portal Admin")


@pytest.fixture()
def course(db, lecturer, student):
    course = Course(
        course_code="CS101",
        course_name="Introduction to Computing",
        lecturer_id=lecturer.id,
        is_active=True,
    )
    db.add(course)
    db.flush()
    db.add(CourseEnrollment(student_id=student.id, course_id=course.id, status="enrolled"))
    db.commit()
    db.refresh(course)
    return course


@pytest.fixture()
def example_quiz(db, course):
    """Two single-choice questions worth 1 and 2 marks; correct answers a and c."""
    return create_quiz(
        db,
        course,
        [
            ("single_choice", ["a", "b", "c"], "a", 1),
            ("single_choice", ["a", "b", "c"], "c", 2),
        ],
    )
