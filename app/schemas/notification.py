from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    quiz_id: int
    student_id: int
    notification_type: str
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="extra")
    is_read: bool
    created_at: datetime


class UnreadCountResponse(BaseModel):
    unread: int
