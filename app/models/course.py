# app/models/course.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)

    # Basic Info
    course_code = Column(String(20), unique=True, nullable=False, index=True)
    course_name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Owner (lecturer teaching the course)
    lecturer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Course(id={self.id}, code='{self.course_code}')>"
