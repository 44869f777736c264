import logging
from typing import List

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.decorator import db_exception
from app.models.course import Course
from app.models.course_enrollment import CourseEnrollment
from app.models.user import User
from app.schemas.course import CourseCreate, EnrollmentCreate

logger = logging.getLogger(__name__)


class CourseService:
    def __init__(self, db: Session):
        self.db = db

    def _get_user_with_role(self, user_id: int, role: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )
        if user.role != role:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"User {user_id} is not a {role}",
            )
        return user

    @db_exception
    def create_course(self, course_in: CourseCreate) -> Course:
        self._get_user_with_role(course_in.lecturer_id, "lecturer")

        course = Course(**course_in.model_dump(), is_active=True)
        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)
        logger.info(f"Course {course.course_code} created (id={course.id})")
        return course

    def list_courses(self) -> List[Course]:
        return self.db.query(Course).order_by(Course.course_code).all()

    @db_exception
    def enroll_student(self, enrollment_in: EnrollmentCreate) -> CourseEnrollment:
        self._get_user_with_role(enrollment_in.student_id, "student")

        course = (
            self.db.query(Course).filter(Course.id == enrollment_in.course_id).first()
        )
        if not course:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Course not found"
            )

        enrollment = CourseEnrollment(**enrollment_in.model_dump())
        self.db.add(enrollment)
        self.db.commit()
        self.db.refresh(enrollment)
        logger.info(
            f"Student {enrollment.student_id} enrolled in course {enrollment.course_id}"
        )
        return enrollment
