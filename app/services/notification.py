import logging
from typing import List

from fastapi import HTTPException, status
from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.models.notification import QuizNotification
from app.models.quiz_attempt import QuizAttempt
from app.schemas.auth import Identity

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify_quiz_completed(self, attempt: QuizAttempt) -> QuizNotification:
        """Tell the course lecturer that a learner finished an attempt."""
        quiz = attempt.quiz
        student = attempt.student

        notification = QuizNotification(
            quiz_id=quiz.id,
            student_id=attempt.student_id,
            lecturer_id=quiz.course.lecturer_id,
            notification_type="quiz_completed",
            title=f"Quiz completed: {quiz.title}",
            message=(
                f"{student.full_name} completed attempt #{attempt.attempt_number} "
                f"of '{quiz.title}' with {float(attempt.percentage or 0):.2f}%"
            ),
            extra={
                "attempt_id": attempt.id,
                "score": float(attempt.score or 0),
                "percentage": float(attempt.percentage or 0),
                "total_marks": float(quiz.total_marks or 0),
                "time_taken": attempt.time_taken,
                "course_name": quiz.course.course_name,
            },
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def list_for_lecturer(self, identity: Identity, limit: int = 20) -> List[QuizNotification]:
        return (
            self.db.query(QuizNotification)
            .filter(QuizNotification.lecturer_id == identity.user_id)
            .order_by(QuizNotification.created_at.desc(), QuizNotification.id.desc())
            .limit(limit)
            .all()
        )

    def unread_count(self, identity: Identity) -> int:
        return (
            self.db.query(QuizNotification)
            .filter(
                and_(
                    QuizNotification.lecturer_id == identity.user_id,
                    QuizNotification.is_read.is_(False),
                )
            )
            .count()
        )

    def mark_read(self, notification_id: int, identity: Identity) -> QuizNotification:
        notification = (
            self.db.query(QuizNotification)
            .filter(
                and_(
                    QuizNotification.id == notification_id,
                    QuizNotification.lecturer_id == identity.user_id,
                )
            )
            .first()
        )
        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found"
            )

        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification
