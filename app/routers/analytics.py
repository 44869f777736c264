from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import require_roles
from app.schemas.auth import Identity
from app.schemas.quiz import QuizAnalyticsResponse
from app.services.quiz_analytics import QuizAnalyticsService

router = APIRouter(
    prefix="/lecturer/quizzes",
    tags=["analytics"],
)


@router.get("/{quiz_id}/analytics", response_model=QuizAnalyticsResponse)
def get_quiz_analytics(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("lecturer")),
):
    """
    Per-question statistics as of the last refresh, plus a live summary of
    completed attempts.
    """
    return QuizAnalyticsService(db).get_quiz_analytics(quiz_id, identity)


@router.post("/{quiz_id}/analytics/refresh", response_model=QuizAnalyticsResponse)
def refresh_quiz_analytics(
    quiz_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("lecturer")),
):
    return QuizAnalyticsService(db).refresh_for_lecturer(quiz_id, identity)
