# app/services/quiz.py
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import and_, func
from sqlalchemy.orm import Session, joinedload

from app.core.decorator import db_exception
from app.models.course import Course
from app.models.quiz import Quiz
from app.models.quiz_attempt import ATTEMPT_COMPLETED, QuizAttempt
from app.models.quiz_question import QuizQuestion
from app.schemas.auth import Identity
from app.schemas.quiz import (
    QuizCreate,
    QuizQuestionCreate,
    QuizQuestionUpdate,
    QuizUpdate,
)
from app.utils.clock import as_utc

logger = logging.getLogger(__name__)


class QuizService:
    """Quiz and question authoring for the lecturer who owns the course."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def get_owned_course(self, course_id: int, identity: Identity) -> Course:
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Course not found"
            )
        if course.lecturer_id != identity.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not teach this course",
            )
        return course

    def get_owned_quiz(self, quiz_id: int, identity: Identity) -> Quiz:
        quiz = (
            self.db.query(Quiz)
            .options(joinedload(Quiz.course))
            .filter(Quiz.id == quiz_id)
            .first()
        )
        if not quiz:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found"
            )
        if quiz.course.lecturer_id != identity.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not own this quiz",
            )
        return quiz

    def get_owned_question(self, question_id: int, identity: Identity) -> QuizQuestion:
        question = (
            self.db.query(QuizQuestion).filter(QuizQuestion.id == question_id).first()
        )
        if not question:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Question not found"
            )
        self.get_owned_quiz(question.quiz_id, identity)
        return question

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------

    def create_quiz(self, quiz_in: QuizCreate, identity: Identity) -> Quiz:
        self.get_owned_course(quiz_in.course_id, identity)

        data = quiz_in.model_dump()
        data["start_time"] = as_utc(data["start_time"])
        data["end_time"] = as_utc(data["end_time"])

        quiz = Quiz(**data, total_marks=0, is_active=True, created_by=identity.user_id)
        self.db.add(quiz)
        self.db.commit()
        self.db.refresh(quiz)
        logger.info(f"Quiz {quiz.id} created in course {quiz.course_id}")
        return quiz

    def list_quizzes(
        self, identity: Identity, course_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        query = (
            self.db.query(Quiz)
            .join(Course, Course.id == Quiz.course_id)
            .filter(Course.lecturer_id == identity.user_id)
        )
        if course_id is not None:
            query = query.filter(Quiz.course_id == course_id)
        quizzes = query.order_by(Quiz.start_time.desc()).all()
        if not quizzes:
            return []

        quiz_ids = [quiz.id for quiz in quizzes]
        question_counts = dict(
            self.db.query(QuizQuestion.quiz_id, func.count(QuizQuestion.id))
            .filter(QuizQuestion.quiz_id.in_(quiz_ids))
            .group_by(QuizQuestion.quiz_id)
            .all()
        )
        attempt_counts = dict(
            self.db.query(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
            .filter(QuizAttempt.quiz_id.in_(quiz_ids))
            .group_by(QuizAttempt.quiz_id)
            .all()
        )
        completed_counts = dict(
            self.db.query(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
            .filter(
                and_(
                    QuizAttempt.quiz_id.in_(quiz_ids),
                    QuizAttempt.status == ATTEMPT_COMPLETED,
                )
            )
            .group_by(QuizAttempt.quiz_id)
            .all()
        )

        return [
            {
                "id": quiz.id,
                "course_id": quiz.course_id,
                "title": quiz.title,
                "description": quiz.description,
                "instructions": quiz.instructions,
                "time_limit": quiz.time_limit,
                "max_attempts": quiz.max_attempts,
                "total_marks": float(quiz.total_marks or 0),
                "start_time": quiz.start_time,
                "end_time": quiz.end_time,
                "is_active": quiz.is_active,
                "created_by": quiz.created_by,
                "created_at": quiz.created_at,
                "updated_at": quiz.updated_at,
                "question_count": question_counts.get(quiz.id, 0),
                "total_attempts": attempt_counts.get(quiz.id, 0),
                "completed_attempts": completed_counts.get(quiz.id, 0),
            }
            for quiz in quizzes
        ]

    def update_quiz(self, quiz_id: int, quiz_in: QuizUpdate, identity: Identity) -> Quiz:
        quiz = self.get_owned_quiz(quiz_id, identity)
        changes = quiz_in.model_dump(exclude_unset=True)

        for field in ("start_time", "end_time"):
            if changes.get(field) is not None:
                changes[field] = as_utc(changes[field])

        start = changes.get("start_time") or as_utc(quiz.start_time)
        end = changes.get("end_time") or as_utc(quiz.end_time)
        if start >= end:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_time must be before end_time",
            )

        for field, value in changes.items():
            setattr(quiz, field, value)

        self.db.commit()
        self.db.refresh(quiz)
        return quiz

    def delete_quiz(self, quiz_id: int, identity: Identity) -> None:
        quiz = self.get_owned_quiz(quiz_id, identity)
        self.db.delete(quiz)
        self.db.commit()
        logger.info(f"Quiz {quiz_id} deleted by lecturer {identity.user_id}")

    def recalculate_total_marks(self, quiz: Quiz) -> Decimal:
        self.db.flush()
        total = (
            self.db.query(func.coalesce(func.sum(QuizQuestion.marks), 0))
            .filter(QuizQuestion.quiz_id == quiz.id)
            .scalar()
        )
        quiz.total_marks = Decimal(str(total))
        return quiz.total_marks

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    @db_exception
    def add_question(
        self, quiz_id: int, question_in: QuizQuestionCreate, identity: Identity
    ) -> QuizQuestion:
        quiz = self.get_owned_quiz(quiz_id, identity)

        question = QuizQuestion(
            quiz_id=quiz.id,
            question_text=question_in.question_text,
            question_type=question_in.question_type,
            options=question_in.options,
            correct_answer=question_in.encoded_correct_answer(),
            marks=question_in.marks,
            order_number=question_in.order_number,
        )
        self.db.add(question)
        self.recalculate_total_marks(quiz)
        self.db.commit()
        self.db.refresh(question)
        logger.info(f"Question {question.id} added to quiz {quiz.id}")
        return question

    def list_questions(self, quiz_id: int, identity: Identity) -> List[QuizQuestion]:
        return self.get_owned_quiz(quiz_id, identity).questions

    @db_exception
    def update_question(
        self, question_id: int, question_in: QuizQuestionUpdate, identity: Identity
    ) -> QuizQuestion:
        question = self.get_owned_question(question_id, identity)

        merged = {
            "question_text": question.question_text,
            "question_type": question.question_type,
            "options": question.options,
            "correct_answer": question.correct_answer,
            "marks": question.marks,
            "order_number": question.order_number,
        }
        merged.update(question_in.model_dump(exclude_unset=True))

        try:
            validated = QuizQuestionCreate(**merged)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=e.errors(include_url=False, include_context=False, include_input=False),
            )

        question.question_text = validated.question_text
        question.question_type = validated.question_type
        question.options = validated.options
        question.correct_answer = validated.encoded_correct_answer()
        question.marks = validated.marks
        question.order_number = validated.order_number

        self.recalculate_total_marks(question.quiz)
        self.db.commit()
        self.db.refresh(question)
        return question

    def delete_question(self, question_id: int, identity: Identity) -> None:
        question = self.get_owned_question(question_id, identity)
        quiz = question.quiz

        self.db.delete(question)
        self.recalculate_total_marks(quiz)
        self.db.commit()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_quiz_attempts(
        self, quiz_id: int, identity: Identity, completed_only: bool = False
    ) -> List[Dict[str, Any]]:
        self.get_owned_quiz(quiz_id, identity)

        query = (
            self.db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.student))
            .filter(QuizAttempt.quiz_id == quiz_id)
        )
        if completed_only:
            query = query.filter(QuizAttempt.status == ATTEMPT_COMPLETED).order_by(
                QuizAttempt.percentage.desc(), QuizAttempt.completed_at.asc()
            )
        else:
            query = query.order_by(QuizAttempt.started_at.desc())

        return [
            {
                "id": attempt.id,
                "quiz_id": attempt.quiz_id,
                "student_id": attempt.student_id,
                "attempt_number": attempt.attempt_number,
                "answers": attempt.answers or {},
                "status": attempt.status,
                "score": attempt.score,
                "percentage": attempt.percentage,
                "started_at": attempt.started_at,
                "completed_at": attempt.completed_at,
                "time_taken": attempt.time_taken,
                "student_name": attempt.student.full_name,
                "student_email": attempt.student.email,
            }
            for attempt in query.all()
        ]
