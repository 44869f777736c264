"""
Test authentication, admin seeding and admin data-entry endpoints
"""

from app.core.config import settings
from app.core.init import initialize_application
from app.models import User
from conftest import auth_headers, create_user


def test_login_returns_token_and_profile(client, student):
    response = client.post(
        "/auth/login", json={"email": "student@college.edu", "password": "Secret@123"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "student"

    me = client.get(
        "/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == "student@college.edu"


def test_login_with_wrong_password_fails(client, student):
    response = client.post(
        "/auth/login", json={"email": "student@college.edu", "password": "nope"}
    )

    assert response.status_code == 401


def test_invalid_token_is_rejected(client, db):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


def test_default_admin_is_seeded_once(db):
    initialize_application(db)
    initialize_application(db)

    admins = db.query(User).filter(User.role == "admin").all()
    assert len(admins) == 1
    assert admins[0].email == settings.admin_default_email.lower()


def test_admin_creates_course_and_enrollment(client, db, admin, lecturer, student):
    headers = auth_headers(admin)

    course = client.post(
        "/admin/courses",
        json={"course_code": "MA201", "course_name": "Linear Algebra", "lecturer_id": lecturer.id},
        headers=headers,
    )
    assert course.status_code == 201
    course_id = course.json()["id"]

    enrollment = client.post(
        "/admin/enrollments",
        json={"student_id": student.id, "course_id": course_id},
        headers=headers,
    )
    assert enrollment.status_code == 201
    assert enrollment.json()["status"] == "enrolled"

    duplicate = client.post(
        "/admin/enrollments",
        json={"student_id": student.id, "course_id": course_id},
        headers=headers,
    )
    assert duplicate.status_code == 409

    listed = client.get("/admin/courses", headers=headers).json()
    assert [c["course_code"] for c in listed] == ["MA201"]


def test_course_lecturer_must_have_lecturer_role(client, admin, student):
    response = client.post(
        "/admin/courses",
        json={"course_code": "X1", "course_name": "Bad", "lecturer_id": student.id},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400


def test_admin_creates_users(client, db, admin):
    response = client.post(
        "/admin/users",
        json={
            "email": "New.Lecturer@College.edu",
            "full_name": "New Lecturer",
            "password": "Lecturer@123",
            "role": "lecturer",
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    assert response.json()["email"] == "new.lecturer@college.edu"


def test_admin_endpoints_reject_other_roles(client, db):
    lecturer = create_user(db, "lecturer", "someone@college.edu")

    response = client.get("/admin/courses", headers=auth_headers(lecturer))

    assert response.status_code == 403


def test_health_and_root(client, db):
    assert client.get("/").json()["status"] == "healthy"
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "healthy"
    assert "X-Process-Time" in health.headers
