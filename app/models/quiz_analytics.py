from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base, JSONType


class QuestionAnalytics(Base):
    __tablename__ = "quiz_analytics"
    __table_args__ = (
        UniqueConstraint("quiz_id", "question_id", name="uq_quiz_analytics_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )

    total_attempts = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    incorrect_answers = Column(Integer, nullable=False, default=0)
    option_distribution = Column(JSONType, nullable=False, default=dict)
    difficulty_rating = Column(
        Numeric(6, 2), nullable=False, default=0
    )  # Percent of answering students who got it right

    last_updated = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
