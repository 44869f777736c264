# app/models/quiz_question.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base, JSONType


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (
        UniqueConstraint("quiz_id", "order_number", name="uq_quiz_question_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )

    question_text = Column(Text, nullable=False)
    question_type = Column(
        String(20), nullable=False
    )  # single_choice, multi_choice, free_text
    options = Column(JSONType, nullable=True)  # Ordered option list for choice types
    correct_answer = Column(
        Text, nullable=False
    )  # Multi-choice: sorted options joined by "|"
    marks = Column(Numeric(6, 2), nullable=False, default=1)
    order_number = Column(Integer, nullable=False)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<QuizQuestion(id={self.id}, quiz_id={self.quiz_id}, order={self.order_number})>"
