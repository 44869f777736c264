from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import require_roles
from app.schemas.auth import Identity
from app.schemas.quiz import (
    LecturerAttemptResponse,
    LecturerQuizSummary,
    QuizCreate,
    QuizQuestionCreate,
    QuizQuestionResponse,
    QuizQuestionUpdate,
    QuizResponse,
    QuizUpdate,
)
from app.services.quiz import QuizService

router = APIRouter(
    prefix="/lecturer",
    tags=["Lecturer Quizzes"],
    responses={404: {"description": "Not found"}},
)

lecturer_only = require_roles("lecturer")


# ==================== Quizzes ====================


@router.post("/quizzes", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
def create_quiz(
    quiz_in: QuizCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).create_quiz(quiz_in, identity)


@router.get("/quizzes", response_model=List[LecturerQuizSummary])
def list_quizzes(
    course_id: Optional[int] = Query(None, description="Only quizzes of this course"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).list_quizzes(identity, course_id)


@router.get("/quizzes/{quiz_id}", response_model=QuizResponse)
def get_quiz(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).get_owned_quiz(quiz_id, identity)


@router.patch("/quizzes/{quiz_id}", response_model=QuizResponse)
def update_quiz(
    quiz_id: int,
    quiz_in: QuizUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).update_quiz(quiz_id, quiz_in, identity)


@router.delete("/quizzes/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quiz(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    """Delete a quiz with its questions, attempts and analytics."""
    QuizService(db).delete_quiz(quiz_id, identity)
    return None


# ==================== Questions ====================


@router.post(
    "/quizzes/{quiz_id}/questions",
    response_model=QuizQuestionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_question(
    quiz_id: int,
    question_in: QuizQuestionCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).add_question(quiz_id, question_in, identity)


@router.get("/quizzes/{quiz_id}/questions", response_model=List[QuizQuestionResponse])
def list_questions(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).list_questions(quiz_id, identity)


@router.patch("/questions/{question_id}", response_model=QuizQuestionResponse)
def update_question(
    question_id: int,
    question_in: QuizQuestionUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).update_question(question_id, question_in, identity)


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    QuizService(db).delete_question(question_id, identity)
    return None


# ==================== Results ====================


@router.get("/quizzes/{quiz_id}/results", response_model=List[LecturerAttemptResponse])
def get_quiz_results(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    """Completed attempts, best percentage first."""
    return QuizService(db).get_quiz_attempts(quiz_id, identity, completed_only=True)


@router.get("/quizzes/{quiz_id}/attempts", response_model=List[LecturerAttemptResponse])
def get_quiz_attempts(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(lecturer_only),
):
    return QuizService(db).get_quiz_attempts(quiz_id, identity)
