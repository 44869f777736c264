from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import require_roles
from app.schemas.auth import Identity
from app.schemas.notification import NotificationResponse, UnreadCountResponse
from app.services.notification import NotificationService

router = APIRouter(prefix="/lecturer/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("lecturer")),
):
    service = NotificationService(db)
    return service.list_for_lecturer(identity, limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("lecturer")),
):
    service = NotificationService(db)
    return {"unread": service.unread_count(identity)}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("lecturer")),
):
    service = NotificationService(db)
    return service.mark_read(notification_id, identity)
