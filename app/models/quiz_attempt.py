# app/models/quiz_attempt.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.sql import func

from app.core.database import Base, JSONType

ATTEMPT_IN_PROGRESS = "in_progress"
ATTEMPT_COMPLETED = "completed"
ATTEMPT_ABANDONED = "abandoned"


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint(
            "quiz_id", "student_id", "attempt_number", name="uq_quiz_attempt_number"
        ),
        # At most one active attempt per (quiz, student)
        Index(
            "uq_quiz_attempt_in_progress",
            "quiz_id",
            "student_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
            sqlite_where=text("status = 'in_progress'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    quiz_id = Column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    # Attempt data
    answers = Column(
        JSONType, nullable=False, default=dict
    )  # {"<question_id>": "<encoded answer>"}
    status = Column(String(20), nullable=False, default=ATTEMPT_IN_PROGRESS, index=True)

    # Results (null until completed)
    score = Column(Numeric(8, 2), nullable=True)
    percentage = Column(Numeric(6, 2), nullable=True)

    # Time tracking
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    time_taken = Column(Integer, nullable=True)  # Seconds

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return (
            f"<QuizAttempt(id={self.id}, quiz_id={self.quiz_id}, "
            f"student_id={self.student_id}, status={self.status})>"
        )
