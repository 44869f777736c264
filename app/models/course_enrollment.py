# app/models/course_enrollment.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from app.core.database import Base


class CourseEnrollment(Base):
    """
    Tracks which students are enrolled in which courses.
    Only rows with status 'enrolled' grant access to a course's quizzes.
    """

    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollment_student_course"),
    )

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)

    status = Column(
        String(20), nullable=False, default="enrolled"
    )  # 'enrolled', 'dropped', 'completed'

    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<CourseEnrollment(id={self.id}, student_id={self.student_id}, course_id={self.course_id}, status={self.status})>"
