from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base


class StudentAnswer(Base):
    """Graded answer for one question of a completed attempt."""

    __tablename__ = "student_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_student_answer"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        Integer,
        ForeignKey("quiz_attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(
        Integer, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )

    selected_option = Column(Text, nullable=True)  # Null if unanswered
    is_correct = Column(Boolean, nullable=False, default=False)
    marks_awarded = Column(Numeric(6, 2), nullable=False, default=0)
    max_marks = Column(Numeric(6, 2), nullable=False)

    answered_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
