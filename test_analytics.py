API = "/api"


def test_platform_analytics(client, admin_headers, instructor, student, register, make_course, enroll):
    course, _ = make_course(instructor["headers"], lessons=2)
    make_course(instructor["headers"], lessons=0, publish=False, title="Draft course")
    enroll(student["headers"], course["id"])
    other = register()
    refunded = enroll(other["headers"], course["id"])
    client.put(
        f"{API}/enrollments/{refunded['id']}/status",
        json={"status": "refunded", "reason": "Changed my mind"},
        headers=instructor["headers"],
    )

    response = client.get(f"{API}/analytics/", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["users_by_role"] == {"student": 2, "instructor": 1, "admin": 1}
    assert body["total_users"] == 4
    assert body["total_courses"] == 2
    assert body["published_courses"] == 1
    assert body["total_lessons"] == 2
    assert body["enrollments_by_status"]["refunded"] == 1
    assert body["total_enrollments"] == 2
    # Refunded payments are not counted
    assert body["total_revenue"] == 50


def test_platform_analytics_is_admin_only(client, instructor):
    response = client.get(f"{API}/analytics/", headers=instructor["headers"])
    assert response.status_code == 403
    assert client.get(f"{API}/analytics/").status_code == 401


def test_learning_summary(client, instructor, student, make_course, enroll):
    course, lessons = make_course(instructor["headers"], lessons=2)
    enrollment = enroll(student["headers"], course["id"])
    client.put(
        f"{API}/enrollments/{enrollment['id']}/progress",
        json={"lesson_id": lessons[0]["id"], "time_spent": 90},
        headers=student["headers"],
    )
    client.post(
        f"{API}/reviews/",
        json={"course_id": course["id"], "rating": 4, "comment": "Solid"},
        headers=student["headers"],
    )

    quiz = client.post(
        f"{API}/quizzes/",
        json={
            "title": "Check",
            "course_id": course["id"],
            "is_published": True,
            "questions": [
                {
                    "question": "2 + 2?",
                    "type": "short-answer",
                    "correct_answer": "4",
                }
            ],
        },
        headers=instructor["headers"],
    ).json()
    attempt = client.post(
        f"{API}/quizzes/{quiz['id']}/attempt", headers=student["headers"]
    ).json()
    client.put(
        f"{API}/quizzes/attempts/{attempt['attempt_id']}/answer",
        json={"question_id": quiz["questions"][0]["id"], "answer": "4"},
        headers=student["headers"],
    )
    client.post(
        f"{API}/quizzes/attempts/{attempt['attempt_id']}/submit", headers=student["headers"]
    )

    body = client.get(f"{API}/analytics/user/me", headers=student["headers"]).json()
    assert body["user_id"] == student["id"]
    assert body["courses_enrolled"] == 1
    assert body["courses_in_progress"] == 1
    assert body["courses_completed"] == 0
    assert body["average_completion"] == 50
    assert body["total_learning_time"] == 90
    assert body["quiz_attempts"] == 1
    assert body["average_quiz_percentage"] == 100
    assert body["quizzes_passed"] == 1
    assert body["reviews_written"] == 1


def test_learning_summary_without_activity(client, student):
    body = client.get(f"{API}/analytics/user/me", headers=student["headers"]).json()
    assert body["courses_enrolled"] == 0
    assert body["average_completion"] == 0
    assert body["average_quiz_percentage"] is None


def test_learning_summary_of_other_user(client, admin_headers, student, instructor):
    response = client.get(f"{API}/analytics/user/{student['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["user_id"] == student["id"]

    denied = client.get(f"{API}/analytics/user/{student['id']}", headers=instructor["headers"])
    assert denied.status_code == 403

    missing = client.get(f"{API}/analytics/user/9999", headers=admin_headers)
    assert missing.status_code == 404
