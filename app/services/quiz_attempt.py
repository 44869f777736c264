# app/services/quiz_attempt.py
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.decorator import db_exception
from app.models.quiz import Quiz
from app.models.quiz_attempt import (
    ATTEMPT_ABANDONED,
    ATTEMPT_COMPLETED,
    ATTEMPT_IN_PROGRESS,
    QuizAttempt,
)
from app.models.quiz_question import QuizQuestion
from app.models.student_answer import StudentAnswer
from app.schemas.auth import Identity
from app.services.grading import (
    calculate_percentage,
    encode_answer,
    grade_answers,
    normalize_answers,
)
from app.services.notification import NotificationService
from app.services.quiz_analytics import QuizAnalyticsService
from app.services.quiz_catalog import QuizCatalogService
from app.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


def attempt_deadline(attempt: QuizAttempt, quiz: Quiz) -> Optional[datetime]:
    """When the countdown of a timed attempt reaches zero; None if untimed."""
    if not quiz.time_limit:
        return None
    return as_utc(attempt.started_at) + timedelta(minutes=quiz.time_limit)


def attempt_cutoff(attempt: QuizAttempt, quiz: Quiz) -> datetime:
    """Last moment the attempt may still be worked on (before grace)."""
    return attempt_deadline(attempt, quiz) or as_utc(quiz.end_time)


def remaining_seconds(attempt: QuizAttempt, quiz: Quiz, now: datetime) -> Optional[int]:
    deadline = attempt_deadline(attempt, quiz)
    if deadline is None:
        return None
    return max(int((deadline - now).total_seconds()), 0)


class QuizAttemptService:
    """
    Server side of the timed attempt workflow.

    Every transition re-validates its preconditions here; whatever the client
    checked beforehand is advisory only. Scores are computed here and nowhere
    else.
    """

    def __init__(self, db: Session):
        self.db = db
        self.catalog = QuizCatalogService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_own_attempt(
        self, attempt_id: int, identity: Identity, lock: bool = False
    ) -> QuizAttempt:
        query = self.db.query(QuizAttempt).filter(
            and_(
                QuizAttempt.id == attempt_id,
                QuizAttempt.student_id == identity.user_id,
            )
        )
        if lock:
            query = query.with_for_update()
        attempt = query.first()

        if not attempt:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Quiz attempt not found",
            )
        return attempt

    def _get_active_attempt(self, quiz_id: int, student_id: int) -> Optional[QuizAttempt]:
        return (
            self.db.query(QuizAttempt)
            .filter(
                and_(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.student_id == student_id,
                    QuizAttempt.status == ATTEMPT_IN_PROGRESS,
                )
            )
            .first()
        )

    def _next_attempt_number(self, quiz_id: int, student_id: int) -> int:
        last = (
            self.db.query(func.max(QuizAttempt.attempt_number))
            .filter(
                and_(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.student_id == student_id,
                )
            )
            .scalar()
        )
        return (last or 0) + 1

    @staticmethod
    def _ensure_in_progress(attempt: QuizAttempt) -> None:
        if attempt.status != ATTEMPT_IN_PROGRESS:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Attempt is no longer in progress (status: {attempt.status})",
            )

    @staticmethod
    def _past_grace(attempt: QuizAttempt, quiz: Quiz, now: datetime) -> bool:
        grace = timedelta(seconds=settings.attempt_grace_seconds)
        return now > attempt_cutoff(attempt, quiz) + grace

    def _attempts_exhausted(self, quiz: Quiz, student_id: int) -> bool:
        """True when completing one more attempt would exceed max_attempts."""
        if not quiz.max_attempts:
            return False
        used = self.catalog.count_completed_attempts(quiz.id, student_id)
        return used >= quiz.max_attempts

    # ------------------------------------------------------------------
    # start
    # ------------------------------------------------------------------

    def start_attempt(self, quiz_id: int, identity: Identity) -> Dict[str, Any]:
        """
        Create the learner's next attempt, or resume the one already in
        progress. Only one attempt per (quiz, learner) is ever active.
        """
        quiz, _ = self.catalog.check_attempt_preconditions(quiz_id, identity)

        attempt = self._get_active_attempt(quiz.id, identity.user_id)
        resumed = attempt is not None

        if not attempt:
            attempt = QuizAttempt(
                quiz_id=quiz.id,
                student_id=identity.user_id,
                attempt_number=self._next_attempt_number(quiz.id, identity.user_id),
                answers={},
                status=ATTEMPT_IN_PROGRESS,
                started_at=utcnow(),
            )
            try:
                self.db.add(attempt)
                self.db.commit()
                self.db.refresh(attempt)
                logger.info(
                    f"Attempt {attempt.id} (#{attempt.attempt_number}) started: "
                    f"quiz={quiz.id} student={identity.user_id}"
                )
            except IntegrityError:
                # A concurrent start won the race; resume its attempt
                self.db.rollback()
                attempt = self._get_active_attempt(quiz.id, identity.user_id)
                if not attempt:
                    raise HTTPException(
                        status_code=status.HTTP_409_CONFLICT,
                        detail="Could not start attempt, please retry",
                    )
                resumed = True

        now = utcnow()
        if resumed and self._past_grace(attempt, quiz, now):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time for the in-progress attempt has run out",
            )

        return {
            "attempt": attempt,
            "resumed": resumed,
            "time_limit": quiz.time_limit,
            "deadline": attempt_deadline(attempt, quiz),
            "remaining_seconds": remaining_seconds(attempt, quiz, now),
            "message": (
                "Resuming incomplete attempt" if resumed else "Quiz started successfully"
            ),
        }

    # ------------------------------------------------------------------
    # answer / autosave
    # ------------------------------------------------------------------

    @db_exception
    def save_answers(
        self, attempt_id: int, identity: Identity, answers: Mapping[str, Any]
    ) -> Dict[str, int]:
        """
        Replace the stored answers map (autosave). The write is conditional on
        the attempt still being in progress, so a late autosave can never
        overwrite a submitted attempt.
        """
        attempt = self._get_own_attempt(attempt_id, identity)
        self._ensure_in_progress(attempt)

        if self._past_grace(attempt, attempt.quiz, utcnow()):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time for this attempt has run out",
            )

        normalized = normalize_answers(answers)
        updated = (
            self.db.query(QuizAttempt)
            .filter(
                and_(
                    QuizAttempt.id == attempt.id,
                    QuizAttempt.status == ATTEMPT_IN_PROGRESS,
                )
            )
            .update({QuizAttempt.answers: normalized}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Attempt is no longer in progress",
            )

        self.db.commit()
        return {"attempt_id": attempt.id, "answered_count": len(normalized)}

    @db_exception
    def save_answer(
        self, attempt_id: int, question_id: int, identity: Identity, value: Any
    ) -> Dict[str, int]:
        """Overwrite the answer for a single question."""
        attempt = self._get_own_attempt(attempt_id, identity, lock=True)
        self._ensure_in_progress(attempt)

        if self._past_grace(attempt, attempt.quiz, utcnow()):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time for this attempt has run out",
            )

        question = (
            self.db.query(QuizQuestion.id)
            .filter(
                and_(
                    QuizQuestion.id == question_id,
                    QuizQuestion.quiz_id == attempt.quiz_id,
                )
            )
            .first()
        )
        if not question:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Question not found in this quiz",
            )

        answers = dict(attempt.answers or {})
        encoded = encode_answer(value)
        if encoded:
            answers[str(question_id)] = encoded
        else:
            answers.pop(str(question_id), None)

        attempt.answers = answers
        self.db.commit()
        return {"attempt_id": attempt.id, "answered_count": len(answers)}

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    def submit_attempt(
        self,
        attempt_id: int,
        identity: Identity,
        answers: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Grade and complete an in-progress attempt.

        Idempotent: submitting an already completed attempt returns the stored
        result and writes nothing.
        """
        attempt = self._get_own_attempt(attempt_id, identity, lock=True)
        quiz = attempt.quiz

        if attempt.status == ATTEMPT_COMPLETED:
            logger.info(f"Attempt {attempt.id} already submitted; ignoring resubmit")
            self.db.rollback()
            return self._submission_result(attempt, quiz, already_submitted=True)

        if attempt.status == ATTEMPT_ABANDONED:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Attempt was abandoned and cannot be submitted",
            )

        if self._attempts_exhausted(quiz, attempt.student_id):
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Maximum attempts ({quiz.max_attempts}) reached",
            )

        now = utcnow()
        if answers is not None:
            if self._past_grace(attempt, quiz, now):
                logger.warning(
                    f"Attempt {attempt.id}: final answers arrived after the deadline; "
                    "grading the last saved answers"
                )
            else:
                attempt.answers = normalize_answers(answers)

        try:
            self._complete(attempt, quiz, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Attempt {attempt.id}: submission failed", exc_info=True)
            raise

        self.db.refresh(attempt)
        logger.info(
            f"Attempt {attempt.id} completed: score={attempt.score} "
            f"percentage={attempt.percentage} time_taken={attempt.time_taken}s"
        )
        self._after_completion(attempt)
        return self._submission_result(attempt, quiz)

    def _complete(self, attempt: QuizAttempt, quiz: Quiz, completed_at: datetime) -> None:
        """Freeze answers, grade them and write the completion fields."""
        answers = dict(attempt.answers or {})
        results = grade_answers(quiz.questions, answers)
        score = sum((r.marks_awarded for r in results), Decimal("0"))
        percentage = calculate_percentage(score, Decimal(str(quiz.total_marks or 0)))

        attempt.answers = answers
        attempt.score = score
        attempt.percentage = round(percentage, 2)
        attempt.completed_at = completed_at
        attempt.time_taken = max(
            int((completed_at - as_utc(attempt.started_at)).total_seconds()), 0
        )
        attempt.status = ATTEMPT_COMPLETED

        for result in results:
            self.db.add(
                StudentAnswer(
                    attempt_id=attempt.id,
                    question_id=result.question_id,
                    selected_option=result.student_answer,
                    is_correct=result.is_correct,
                    marks_awarded=result.marks_awarded,
                    max_marks=result.max_marks,
                )
            )

    def _after_completion(self, attempt: QuizAttempt) -> None:
        """Analytics and lecturer notification; failures never undo a submit."""
        try:
            QuizAnalyticsService(self.db).refresh_quiz_analytics(attempt.quiz_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Attempt {attempt.id}: analytics update failed: {e}")

        try:
            NotificationService(self.db).notify_quiz_completed(attempt)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Attempt {attempt.id}: lecturer notification failed: {e}")

    @staticmethod
    def _submission_result(
        attempt: QuizAttempt, quiz: Quiz, already_submitted: bool = False
    ) -> Dict[str, Any]:
        return {
            "attempt_id": attempt.id,
            "status": attempt.status,
            "score": float(attempt.score or 0),
            "percentage": float(attempt.percentage or 0),
            "total_marks": float(quiz.total_marks or 0),
            "time_taken": attempt.time_taken or 0,
            "completed_at": attempt.completed_at,
            "already_submitted": already_submitted,
        }

    # ------------------------------------------------------------------
    # abandon / expiry
    # ------------------------------------------------------------------

    @db_exception
    def abandon_attempt(self, attempt_id: int, identity: Identity) -> QuizAttempt:
        attempt = self._get_own_attempt(attempt_id, identity, lock=True)
        self._ensure_in_progress(attempt)

        attempt.status = ATTEMPT_ABANDONED
        self.db.commit()
        self.db.refresh(attempt)
        logger.info(f"Attempt {attempt.id} abandoned by student {identity.user_id}")
        return attempt

    def expire_overdue_attempts(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Close in-progress attempts whose time is up and whose learner never
        submitted: timed attempts past their deadline, untimed attempts whose
        quiz window has closed. Attempts holding saved answers are graded as
        of the cutoff; empty ones are abandoned.
        """
        now = now or utcnow()
        grace = timedelta(seconds=settings.attempt_grace_seconds)

        candidates = (
            self.db.query(QuizAttempt.id)
            .filter(
                and_(
                    QuizAttempt.status == ATTEMPT_IN_PROGRESS,
                    QuizAttempt.started_at < now - grace,
                )
            )
            .all()
        )

        completed: List[QuizAttempt] = []
        abandoned = 0
        for (attempt_id,) in candidates:
            attempt = (
                self.db.query(QuizAttempt)
                .filter(QuizAttempt.id == attempt_id)
                .with_for_update()
                .first()
            )
            if not attempt or attempt.status != ATTEMPT_IN_PROGRESS:
                self.db.rollback()
                continue

            quiz = attempt.quiz
            cutoff = attempt_cutoff(attempt, quiz)
            if now <= cutoff + grace:
                self.db.rollback()
                continue

            try:
                if self._attempts_exhausted(quiz, attempt.student_id):
                    attempt.status = ATTEMPT_ABANDONED
                    abandoned += 1
                    logger.warning(
                        f"Attempt {attempt_id}: max attempts reached, abandoned instead of graded"
                    )
                elif attempt.answers:
                    self._complete(attempt, quiz, min(cutoff, now))
                    completed.append(attempt)
                else:
                    attempt.status = ATTEMPT_ABANDONED
                    abandoned += 1
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Attempt {attempt_id}: expiry failed: {e}")

        for attempt in completed:
            self._after_completion(attempt)

        if completed or abandoned:
            logger.info(
                f"Expired attempts: {len(completed)} auto-submitted, {abandoned} abandoned"
            )
        return {"completed": len(completed), "abandoned": abandoned}

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_attempt_detail(self, attempt_id: int, identity: Identity) -> Dict[str, Any]:
        attempt = self._get_own_attempt(attempt_id, identity)
        quiz = attempt.quiz

        results = None
        if attempt.status == ATTEMPT_COMPLETED:
            results = [
                {
                    "question_id": answer.question_id,
                    "selected_option": answer.selected_option,
                    "is_correct": answer.is_correct,
                    "marks_awarded": float(answer.marks_awarded),
                    "max_marks": float(answer.max_marks),
                }
                for answer in sorted(
                    attempt.graded_answers, key=lambda a: a.question_id
                )
            ]

        return {
            "id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "student_id": attempt.student_id,
            "attempt_number": attempt.attempt_number,
            "answers": attempt.answers or {},
            "status": attempt.status,
            "score": float(attempt.score) if attempt.score is not None else None,
            "percentage": (
                float(attempt.percentage) if attempt.percentage is not None else None
            ),
            "started_at": attempt.started_at,
            "completed_at": attempt.completed_at,
            "time_taken": attempt.time_taken,
            "quiz_title": quiz.title,
            "total_marks": float(quiz.total_marks or 0),
            "results": results,
        }

    def get_student_results(self, identity: Identity) -> List[Dict[str, Any]]:
        """Completed attempts of the learner, newest first."""
        attempts = (
            self.db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.quiz).joinedload(Quiz.course))
            .filter(
                and_(
                    QuizAttempt.student_id == identity.user_id,
                    QuizAttempt.status == ATTEMPT_COMPLETED,
                )
            )
            .order_by(QuizAttempt.completed_at.desc())
            .all()
        )

        return [
            {
                "attempt_id": attempt.id,
                "quiz_id": attempt.quiz_id,
                "quiz_title": attempt.quiz.title,
                "course_code": attempt.quiz.course.course_code,
                "course_name": attempt.quiz.course.course_name,
                "attempt_number": attempt.attempt_number,
                "score": float(attempt.score or 0),
                "percentage": float(attempt.percentage or 0),
                "total_marks": float(attempt.quiz.total_marks or 0),
                "time_taken": attempt.time_taken,
                "completed_at": attempt.completed_at,
            }
            for attempt in attempts
        ]
