from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CourseCreate(BaseModel):
    course_code: str = Field(..., min_length=1, max_length=20)
    course_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    lecturer_id: int


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_code: str
    course_name: str
    description: Optional[str] = None
    lecturer_id: int
    is_active: bool
    created_at: datetime


class EnrollmentCreate(BaseModel):
    student_id: int
    course_id: int
    status: str = Field(default="enrolled", pattern="^(enrolled|dropped|completed)$")


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: int
    status: str
    enrolled_at: datetime
