# app/services/quiz_catalog.py
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, func
from sqlalchemy.orm import Session, joinedload

from app.models.course import Course
from app.models.course_enrollment import CourseEnrollment
from app.models.quiz import Quiz
from app.models.quiz_attempt import ATTEMPT_COMPLETED, ATTEMPT_IN_PROGRESS, QuizAttempt
from app.models.quiz_question import QuizQuestion
from app.schemas.auth import Identity
from app.utils.clock import as_utc, utcnow


def is_window_open(quiz: Quiz, now: datetime) -> bool:
    return as_utc(quiz.start_time) <= now <= as_utc(quiz.end_time)


def attempts_remaining(quiz: Quiz, attempts_used: int) -> Optional[int]:
    if not quiz.max_attempts:
        return None
    return max(quiz.max_attempts - attempts_used, 0)


class QuizCatalogService:
    """Read-only queries scoped to one learner."""

    def __init__(self, db: Session):
        self.db = db

    def enrolled_course_ids(self, student_id: int) -> List[int]:
        rows = (
            self.db.query(CourseEnrollment.course_id)
            .filter(
                and_(
                    CourseEnrollment.student_id == student_id,
                    CourseEnrollment.status == "enrolled",
                )
            )
            .all()
        )
        return [row.course_id for row in rows]

    def is_enrolled(self, student_id: int, course_id: int) -> bool:
        return (
            self.db.query(CourseEnrollment.id)
            .filter(
                and_(
                    CourseEnrollment.student_id == student_id,
                    CourseEnrollment.course_id == course_id,
                    CourseEnrollment.status == "enrolled",
                )
            )
            .first()
            is not None
        )

    def count_completed_attempts(self, quiz_id: int, student_id: int) -> int:
        return (
            self.db.query(QuizAttempt)
            .filter(
                and_(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.student_id == student_id,
                    QuizAttempt.status == ATTEMPT_COMPLETED,
                )
            )
            .count()
        )

    def get_available_quizzes(self, identity: Identity) -> List[Dict]:
        """
        Quizzes from the learner's enrolled courses that are active and whose
        activation window has not closed yet, soonest first.
        """
        course_ids = self.enrolled_course_ids(identity.user_id)
        if not course_ids:
            return []

        now = utcnow()
        quizzes = (
            self.db.query(Quiz)
            .options(joinedload(Quiz.course))
            .join(Course, Course.id == Quiz.course_id)
            .filter(
                and_(
                    Quiz.course_id.in_(course_ids),
                    Quiz.is_active.is_(True),
                    Course.is_active.is_(True),
                    Quiz.end_time >= now,
                )
            )
            .order_by(Quiz.start_time.asc())
            .all()
        )
        if not quizzes:
            return []

        quiz_ids = [quiz.id for quiz in quizzes]

        question_counts = dict(
            self.db.query(QuizQuestion.quiz_id, func.count(QuizQuestion.id))
            .filter(QuizQuestion.quiz_id.in_(quiz_ids))
            .group_by(QuizQuestion.quiz_id)
            .all()
        )

        attempt_rows = (
            self.db.query(
                QuizAttempt.quiz_id, QuizAttempt.status, func.count(QuizAttempt.id)
            )
            .filter(
                and_(
                    QuizAttempt.quiz_id.in_(quiz_ids),
                    QuizAttempt.student_id == identity.user_id,
                )
            )
            .group_by(QuizAttempt.quiz_id, QuizAttempt.status)
            .all()
        )
        completed = {}
        in_progress = set()
        for quiz_id, attempt_status, count in attempt_rows:
            if attempt_status == ATTEMPT_COMPLETED:
                completed[quiz_id] = count
            elif attempt_status == ATTEMPT_IN_PROGRESS:
                in_progress.add(quiz_id)

        catalog = []
        for quiz in quizzes:
            used = completed.get(quiz.id, 0)
            catalog.append(
                {
                    "id": quiz.id,
                    "course_id": quiz.course_id,
                    "course_code": quiz.course.course_code,
                    "course_name": quiz.course.course_name,
                    "title": quiz.title,
                    "description": quiz.description,
                    "time_limit": quiz.time_limit,
                    "max_attempts": quiz.max_attempts,
                    "total_marks": float(quiz.total_marks or 0),
                    "start_time": quiz.start_time,
                    "end_time": quiz.end_time,
                    "question_count": question_counts.get(quiz.id, 0),
                    "attempts_used": used,
                    "attempts_remaining": attempts_remaining(quiz, used),
                    "has_in_progress_attempt": quiz.id in in_progress,
                    "is_open": is_window_open(quiz, now),
                }
            )
        return catalog

    def get_quiz_for_attempt(self, quiz_id: int, identity: Identity) -> Dict:
        """
        Quiz details and questions (without correct answers) for a learner.
        Enrollment, activation window and attempt limits are all enforced here.
        """
        quiz, used = self.check_attempt_preconditions(quiz_id, identity)

        questions = [
            {
                "id": question.id,
                "question_text": question.question_text,
                "question_type": question.question_type,
                "options": question.options,
                "marks": float(question.marks),
                "order_number": question.order_number,
            }
            for question in quiz.questions
        ]

        return {
            "id": quiz.id,
            "course_id": quiz.course_id,
            "course_code": quiz.course.course_code,
            "course_name": quiz.course.course_name,
            "title": quiz.title,
            "description": quiz.description,
            "instructions": quiz.instructions,
            "time_limit": quiz.time_limit,
            "max_attempts": quiz.max_attempts,
            "total_marks": float(quiz.total_marks or 0),
            "start_time": quiz.start_time,
            "end_time": quiz.end_time,
            "questions": questions,
            "attempts_used": used,
            "attempts_remaining": attempts_remaining(quiz, used),
        }

    def check_attempt_preconditions(self, quiz_id: int, identity: Identity):
        """Return (quiz, completed attempt count) or raise the blocking error."""
        quiz = (
            self.db.query(Quiz)
            .options(joinedload(Quiz.course))
            .filter(and_(Quiz.id == quiz_id, Quiz.is_active.is_(True)))
            .first()
        )

        if not quiz:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Quiz not found or not active",
            )

        if not self.is_enrolled(identity.user_id, quiz.course_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Student not enrolled in this course",
            )

        now = utcnow()
        if now < as_utc(quiz.start_time):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Quiz has not started yet",
            )
        if now > as_utc(quiz.end_time):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Quiz has ended",
            )

        used = self.count_completed_attempts(quiz.id, identity.user_id)
        if quiz.max_attempts and used >= quiz.max_attempts:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Maximum attempts ({quiz.max_attempts}) reached",
            )

        return quiz, used
