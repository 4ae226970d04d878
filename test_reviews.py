import pytest

API = "/api"


@pytest.fixture
def course(instructor, make_course):
    course, _ = make_course(instructor["headers"], lessons=1)
    return course


def post_review(client, headers, course_id, rating=5, **fields):
    payload = {"course_id": course_id, "rating": rating, "comment": "Great course"}
    payload.update(fields)
    return client.post(f"{API}/reviews/", json=payload, headers=headers)


def test_review_requires_enrollment(client, student, course):
    response = post_review(client, student["headers"], course["id"])
    assert response.status_code == 403


def test_create_review_updates_course_rating(client, student, register, course, enroll):
    enroll(student["headers"], course["id"])
    created = post_review(
        client, student["headers"], course["id"], rating=5,
        title="Loved it", pros=[" Clear ", ""], cons=[],
    )
    assert created.status_code == 201
    body = created.json()
    assert body["pros"] == ["Clear"]
    assert body["is_verified"] is False
    assert body["is_approved"] is True
    assert body["student"]["first_name"] == "Alan"

    other = register()
    enroll(other["headers"], course["id"])
    post_review(client, other["headers"], course["id"], rating=2)

    refreshed = client.get(f"{API}/courses/{course['id']}").json()
    assert refreshed["average_rating"] == 3.5
    assert refreshed["total_ratings"] == 2

    duplicate = post_review(client, student["headers"], course["id"])
    assert duplicate.status_code == 400


def test_completed_enrollment_marks_review_verified(client, instructor, student, course, enroll):
    enrollment = enroll(student["headers"], course["id"])
    client.put(
        f"{API}/enrollments/{enrollment['id']}/status",
        json={"status": "completed"},
        headers=instructor["headers"],
    )

    body = post_review(client, student["headers"], course["id"]).json()
    assert body["is_verified"] is True


def test_course_reviews_with_summary(client, student, register, course, enroll):
    enroll(student["headers"], course["id"])
    post_review(client, student["headers"], course["id"], rating=4)
    other = register()
    enroll(other["headers"], course["id"])
    post_review(client, other["headers"], course["id"], rating=1)

    body = client.get(f"{API}/reviews/course/{course['id']}").json()
    assert body["total"] == 2
    summary = body["rating_summary"]
    assert summary["total_reviews"] == 2
    assert summary["average_rating"] == 2.5
    assert summary["distribution"] == {"1": 1, "2": 0, "3": 0, "4": 1, "5": 0}

    lowest = client.get(
        f"{API}/reviews/course/{course['id']}", params={"sort": "lowest"}
    ).json()
    assert [r["rating"] for r in lowest["reviews"]] == [1, 4]

    only_fours = client.get(
        f"{API}/reviews/course/{course['id']}", params={"rating": 4}
    ).json()
    assert only_fours["total"] == 1

    assert client.get(f"{API}/reviews/course/9999").status_code == 404


def test_only_author_updates_review(client, student, register, course, enroll):
    enroll(student["headers"], course["id"])
    review = post_review(client, student["headers"], course["id"], rating=5).json()

    other = register()
    denied = client.put(
        f"{API}/reviews/{review['id']}", json={"rating": 1}, headers=other["headers"]
    )
    assert denied.status_code == 403

    updated = client.put(
        f"{API}/reviews/{review['id']}",
        json={"rating": 3, "comment": "Good, not great"},
        headers=student["headers"],
    )
    assert updated.status_code == 200
    assert updated.json()["comment"] == "Good, not great"
    assert client.get(f"{API}/courses/{course['id']}").json()["average_rating"] == 3


def test_replies(client, instructor, student, register, admin_headers, course, enroll):
    enroll(student["headers"], course["id"])
    review = post_review(client, student["headers"], course["id"]).json()
    url = f"{API}/reviews/{review['id']}/reply"

    outsider = register("instructor")
    assert client.post(url, json={"message": "Hi"}, headers=outsider["headers"]).status_code == 403
    assert client.post(url, json={"message": "Hi"}, headers=student["headers"]).status_code == 403
    assert client.post(url, json={"message": " "}, headers=instructor["headers"]).status_code == 422

    replied = client.post(url, json={"message": "Thank you!"}, headers=instructor["headers"])
    assert replied.status_code == 200
    replies = replied.json()["replies"]
    assert [r["message"] for r in replies] == ["Thank you!"]
    assert replies[0]["user"]["last_name"] == "Lovelace"

    reply_url = f"{API}/reviews/{review['id']}/reply/{replies[0]['id']}"
    assert client.delete(reply_url, headers=student["headers"]).status_code == 403
    assert client.delete(reply_url, headers=instructor["headers"]).status_code == 200
    assert client.get(f"{API}/reviews/{review['id']}").json()["replies"] == []

    missing = client.delete(
        f"{API}/reviews/{review['id']}/reply/9999", headers=admin_headers
    )
    assert missing.status_code == 404


def test_helpful_and_report(client, student, register, course, enroll):
    enroll(student["headers"], course["id"])
    review = post_review(client, student["headers"], course["id"]).json()
    reader = register()

    for _ in range(3):
        helpful = client.put(f"{API}/reviews/{review['id']}/helpful", headers=reader["headers"])
    assert helpful.json() == {"helpful_votes": 3, "helpful_percentage": 100}

    reported = client.put(f"{API}/reviews/{review['id']}/report", headers=reader["headers"])
    assert reported.json()["report_count"] == 1

    body = client.get(f"{API}/reviews/{review['id']}").json()
    assert body["helpful_percentage"] == 75

    assert client.put(f"{API}/reviews/{review['id']}/helpful").status_code == 401


def test_admin_moderation(client, instructor, student, admin_headers, course, enroll):
    enroll(student["headers"], course["id"])
    review = post_review(client, student["headers"], course["id"], rating=4).json()
    client.put(f"{API}/reviews/{review['id']}/report", headers=instructor["headers"])

    reported = client.get(
        f"{API}/reviews/admin/all", params={"reported": True}, headers=admin_headers
    ).json()
    assert [r["id"] for r in reported["reviews"]] == [review["id"]]

    denied = client.put(
        f"{API}/reviews/{review['id']}/approve",
        json={"is_approved": False},
        headers=instructor["headers"],
    )
    assert denied.status_code == 403

    hidden = client.put(
        f"{API}/reviews/{review['id']}/approve",
        json={"is_approved": False},
        headers=admin_headers,
    )
    assert hidden.json()["is_approved"] is False

    # Unapproved reviews drop out of the public list and the rating
    public = client.get(f"{API}/reviews/course/{course['id']}").json()
    assert public["total"] == 0
    refreshed = client.get(f"{API}/courses/{course['id']}").json()
    assert refreshed["average_rating"] == 0
    assert refreshed["total_ratings"] == 0

    deleted = client.delete(f"{API}/reviews/{review['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert client.get(f"{API}/reviews/{review['id']}").status_code == 404


def test_instructor_sees_reviews_of_own_courses(
    client, instructor, student, register, make_course, course, enroll
):
    enroll(student["headers"], course["id"])
    post_review(client, student["headers"], course["id"])

    other_instructor = register("instructor")
    other_course, _ = make_course(other_instructor["headers"], title="Elsewhere")
    enroll(student["headers"], other_course["id"])
    post_review(client, student["headers"], other_course["id"])

    body = client.get(
        f"{API}/reviews/instructor/my-courses", headers=instructor["headers"]
    ).json()
    assert body["total"] == 1
    assert body["reviews"][0]["course"]["id"] == course["id"]
