from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import require_roles
from app.schemas.auth import Identity, UserCreate, UserResponse
from app.schemas.course import (
    CourseCreate,
    CourseResponse,
    EnrollmentCreate,
    EnrollmentResponse,
)
from app.services.auth import auth_service
from app.services.course import CourseService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    responses={404: {"description": "Not found"}},
)


@router.post(
    "/users",
    response_model=UserResponse,
    description="Create a user account with any role",
    status_code=201,
)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_roles("admin")),
):
    return auth_service.create_user(user_in, db)


@router.post("/courses", response_model=CourseResponse, status_code=201)
def create_course(
    course_in: CourseCreate,
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_roles("admin")),
):
    """Create a course taught by an existing lecturer."""
    return CourseService(db).create_course(course_in)


@router.get("/courses", response_model=List[CourseResponse])
def list_courses(
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_roles("admin")),
):
    return CourseService(db).list_courses()


@router.post("/enrollments", response_model=EnrollmentResponse, status_code=201)
def enroll_student(
    enrollment_in: EnrollmentCreate,
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_roles("admin")),
):
    """Enroll a student in a course. Duplicate enrollments are rejected."""
    return CourseService(db).enroll_student(enrollment_in)
