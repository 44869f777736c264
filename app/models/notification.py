from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base, JSONType


class QuizNotification(Base):
    __tablename__ = "quiz_notifications"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    lecturer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    notification_type = Column(String(50), default="quiz_completed", nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    extra = Column("metadata", JSONType, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
