import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from app.models.quiz import Quiz
from app.models.quiz_analytics import QuestionAnalytics
from app.models.quiz_attempt import ATTEMPT_COMPLETED, QuizAttempt
from app.schemas.auth import Identity
from app.services.grading import (
    FREE_TEXT,
    MULTI_CHOICE,
    decode_multi_choice,
    grade_answers,
)
from app.services.quiz import QuizService
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class QuizAnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def refresh_quiz_analytics(self, quiz_id: int) -> List[QuestionAnalytics]:
        """
        Recompute per-question statistics from every completed attempt.

        Correctness goes through the same rule as grading, so a multi-choice
        answer given in a different order still counts as correct here.
        """
        quiz = self.db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz:
            return []

        attempts = (
            self.db.query(QuizAttempt)
            .filter(
                and_(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.status == ATTEMPT_COMPLETED,
                )
            )
            .all()
        )

        question_types = {q.id: q.question_type for q in quiz.questions}
        stats: Dict[int, Dict[str, Any]] = {}
        for question in quiz.questions:
            distribution = {}
            if question.question_type != FREE_TEXT:
                distribution = {option: 0 for option in (question.options or [])}
            stats[question.id] = {"answered": 0, "correct": 0, "distribution": distribution}

        for attempt in attempts:
            for result in grade_answers(quiz.questions, attempt.answers or {}):
                if result.student_answer is None:
                    continue
                entry = stats[result.question_id]
                entry["answered"] += 1
                if result.is_correct:
                    entry["correct"] += 1

                question_type = question_types[result.question_id]
                if question_type == FREE_TEXT:
                    continue
                selected = (
                    decode_multi_choice(result.student_answer)
                    if question_type == MULTI_CHOICE
                    else [result.student_answer]
                )
                for option in selected:
                    entry["distribution"][option] = entry["distribution"].get(option, 0) + 1

        existing = {
            row.question_id: row
            for row in self.db.query(QuestionAnalytics)
            .filter(QuestionAnalytics.quiz_id == quiz_id)
            .all()
        }

        now = utcnow()
        rows = []
        for question_id, entry in stats.items():
            answered = entry["answered"]
            correct = entry["correct"]
            difficulty = (
                round(Decimal(correct) / Decimal(answered) * 100, 2)
                if answered
                else Decimal("0")
            )

            row = existing.get(question_id)
            if not row:
                row = QuestionAnalytics(quiz_id=quiz_id, question_id=question_id)
                self.db.add(row)

            row.total_attempts = answered
            row.correct_answers = correct
            row.incorrect_answers = answered - correct
            row.option_distribution = entry["distribution"]
            row.difficulty_rating = difficulty
            row.last_updated = now
            rows.append(row)

        self.db.commit()
        logger.info(
            f"Analytics refreshed for quiz {quiz_id}: "
            f"{len(rows)} questions, {len(attempts)} completed attempts"
        )
        return rows

    def _summary(self, quiz_id: int) -> Dict[str, Any]:
        completed, average, highest, lowest = (
            self.db.query(
                func.count(QuizAttempt.id),
                func.avg(QuizAttempt.percentage),
                func.max(QuizAttempt.percentage),
                func.min(QuizAttempt.percentage),
            )
            .filter(
                and_(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.status == ATTEMPT_COMPLETED,
                )
            )
            .one()
        )
        return {
            "completed_attempts": completed or 0,
            "average_percentage": round(float(average), 2) if average is not None else None,
            "highest_percentage": float(highest) if highest is not None else None,
            "lowest_percentage": float(lowest) if lowest is not None else None,
        }

    def get_quiz_analytics(self, quiz_id: int, identity: Identity) -> Dict[str, Any]:
        QuizService(self.db).get_owned_quiz(quiz_id, identity)

        rows = (
            self.db.query(QuestionAnalytics)
            .filter(QuestionAnalytics.quiz_id == quiz_id)
            .order_by(QuestionAnalytics.question_id)
            .all()
        )
        return {"quiz_id": quiz_id, **self._summary(quiz_id), "questions": rows}

    def refresh_for_lecturer(self, quiz_id: int, identity: Identity) -> Dict[str, Any]:
        QuizService(self.db).get_owned_quiz(quiz_id, identity)
        self.refresh_quiz_analytics(quiz_id)
        return self.get_quiz_analytics(quiz_id, identity)
