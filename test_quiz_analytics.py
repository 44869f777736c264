"""
Per-question analytics and lecturer notifications after submissions
"""

from conftest import auth_headers, create_quiz, create_user
from app.models import CourseEnrollment


def enroll(db, course, email):
    student = create_user(db, "student", email)
    db.add(CourseEnrollment(student_id=student.id, course_id=course.id, status="enrolled"))
    db.commit()
    return student


def take_quiz(client, quiz, student, answers):
    attempt = client.post(
        f"/student/quizzes/{quiz.id}/attempts", headers=auth_headers(student)
    ).json()["attempt"]
    return client.post(
        f"/student/attempts/{attempt['id']}/submit",
        json={"answers": answers},
        headers=auth_headers(student),
    ).json()


def test_analytics_use_grading_rules(client, db, course, lecturer, student):
    quiz = create_quiz(
        db,
        course,
        [
            ("multi_choice", ["a", "b", "c"], ["a", "b"], 2),
            ("free_text", None, "paris", 1),
        ],
    )
    multi_id, text_id = [q.id for q in quiz.questions]
    second = enroll(db, course, "second@college.edu")

    take_quiz(client, quiz, student, {str(multi_id): ["b", "a"], str(text_id): " Paris "})
    take_quiz(client, quiz, second, {str(multi_id): ["a"]})

    response = client.get(
        f"/lecturer/quizzes/{quiz.id}/analytics", headers=auth_headers(lecturer)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["completed_attempts"] == 2
    assert body["highest_percentage"] == 100.0
    assert body["lowest_percentage"] == 0.0

    stats = {row["question_id"]: row for row in body["questions"]}
    multi = stats[multi_id]
    assert multi["total_attempts"] == 2
    assert multi["correct_answers"] == 1
    assert multi["incorrect_answers"] == 1
    assert multi["difficulty_rating"] == 50.0
    assert multi["option_distribution"] == {"a": 2, "b": 1, "c": 0}

    text = stats[text_id]
    assert text["total_attempts"] == 1
    assert text["correct_answers"] == 1
    assert text["difficulty_rating"] == 100.0


def test_refresh_endpoint_requires_ownership(client, db, course, example_quiz):
    stranger = create_user(db, "lecturer", "stranger@college.edu")

    response = client.post(
        f"/lecturer/quizzes/{example_quiz.id}/analytics/refresh",
        headers=auth_headers(stranger),
    )

    assert response.status_code == 403


def test_refresh_with_no_attempts(client, lecturer, example_quiz):
    response = client.post(
        f"/lecturer/quizzes/{example_quiz.id}/analytics/refresh",
        headers=auth_headers(lecturer),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["completed_attempts"] == 0
    assert body["average_percentage"] is None
    assert all(row["difficulty_rating"] == 0 for row in body["questions"])
    assert len(body["questions"]) == 2


def test_completion_notifies_lecturer(client, lecturer, student, example_quiz):
    take_quiz(client, example_quiz, student, {})

    unread = client.get(
        "/lecturer/notifications/unread-count", headers=auth_headers(lecturer)
    ).json()
    assert unread == {"unread": 1}

    notifications = client.get(
        "/lecturer/notifications", headers=auth_headers(lecturer)
    ).json()
    assert len(notifications) == 1
    notification = notifications[0]
    assert notification["notification_type"] == "quiz_completed"
    assert notification["metadata"]["course_name"] == "Introduction to Computing"
    assert notification["metadata"]["total_marks"] == 3.0

    marked = client.patch(
        f"/lecturer/notifications/{notification['id']}/read",
        headers=auth_headers(lecturer),
    )
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True

    unread = client.get(
        "/lecturer/notifications/unread-count", headers=auth_headers(lecturer)
    ).json()
    assert unread == {"unread": 0}


def test_notifications_are_private_to_their_lecturer(client, db, lecturer, student, example_quiz):
    take_quiz(client, example_quiz, student, {})
    notification_id = client.get(
        "/lecturer/notifications", headers=auth_headers(lecturer)
    ).json()[0]["id"]
    other = create_user(db, "lecturer", "other@college.edu")

    response = client.patch(
        f"/lecturer/notifications/{notification_id}/read", headers=auth_headers(other)
    )

    assert response.status_code == 404
