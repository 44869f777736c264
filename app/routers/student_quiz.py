"""
Learner-facing quiz endpoints: catalog, quiz detail and the attempt lifecycle.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import require_roles
from app.schemas.auth import Identity
from app.schemas.quiz import (
    AnswersSavedResponse,
    AnswersUpdate,
    AnswerUpdate,
    AttemptDetailResponse,
    AvailableQuizResponse,
    QuizAttemptResponse,
    QuizForAttemptResponse,
    StartAttemptResponse,
    StudentQuizResultResponse,
    SubmitAttemptRequest,
    SubmitAttemptResponse,
)
from app.services.quiz_attempt import QuizAttemptService
from app.services.quiz_catalog import QuizCatalogService

router = APIRouter(prefix="/student", tags=["Student Quizzes"])

student_only = require_roles("student")


@router.get("/quizzes", response_model=List[AvailableQuizResponse])
def list_available_quizzes(
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    """Quizzes from enrolled courses that have not closed yet."""
    return QuizCatalogService(db).get_available_quizzes(identity)


@router.get("/quizzes/{quiz_id}", response_model=QuizForAttemptResponse)
def get_quiz(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    """Quiz with its questions, correct answers removed."""
    return QuizCatalogService(db).get_quiz_for_attempt(quiz_id, identity)


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=StartAttemptResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_attempt(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    """Start a new attempt, or resume the one already in progress."""
    return QuizAttemptService(db).start_attempt(quiz_id, identity)


@router.put("/attempts/{attempt_id}/answers", response_model=AnswersSavedResponse)
def save_answers(
    attempt_id: int,
    answers_in: AnswersUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    return QuizAttemptService(db).save_answers(attempt_id, identity, answers_in.answers)


@router.put(
    "/attempts/{attempt_id}/answers/{question_id}",
    response_model=AnswersSavedResponse,
)
def save_answer(
    attempt_id: int,
    question_id: int,
    answer_in: AnswerUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    return QuizAttemptService(db).save_answer(
        attempt_id, question_id, identity, answer_in.answer
    )


@router.post("/attempts/{attempt_id}/submit", response_model=SubmitAttemptResponse)
def submit_attempt(
    attempt_id: int,
    submit_in: Optional[SubmitAttemptRequest] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    """Grade and complete the attempt. Resubmitting returns the stored result."""
    answers = submit_in.answers if submit_in else None
    return QuizAttemptService(db).submit_attempt(attempt_id, identity, answers)


@router.post("/attempts/{attempt_id}/abandon", response_model=QuizAttemptResponse)
def abandon_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    return QuizAttemptService(db).abandon_attempt(attempt_id, identity)


@router.get("/attempts/{attempt_id}", response_model=AttemptDetailResponse)
def get_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    return QuizAttemptService(db).get_attempt_detail(attempt_id, identity)


@router.get("/quiz-results", response_model=List[StudentQuizResultResponse])
def get_quiz_results(
    db: Session = Depends(get_db),
    identity: Identity = Depends(student_only),
):
    """Completed attempts, newest first."""
    return QuizAttemptService(db).get_student_results(identity)
