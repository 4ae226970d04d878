API = "/api"


def video_lesson(course_id, **overrides):
    data = {
        "course_id": course_id,
        "title": "Intro video",
        "section": "Introduction",
        "order": 1,
        "type": "video",
        "content": {"video_url": "https://cdn.example.com/intro.mp4", "video_duration": 754},
        "is_preview": True,
        "is_published": True,
    }
    data.update(overrides)
    return data


def test_create_video_lesson(client, instructor, make_course):
    course, _ = make_course(instructor["headers"], lessons=0, publish=False)

    response = client.post(
        f"{API}/lessons/", json=video_lesson(course["id"]), headers=instructor["headers"]
    )
    assert response.status_code == 201
    body = response.json()
    assert body["content"]["video_url"] == "https://cdn.example.com/intro.mp4"
    assert body["formatted_duration"] == "12:34"
    assert body["completion_watch_percentage"] == 80


def test_content_must_match_lesson_type(client, instructor, make_course):
    course, _ = make_course(instructor["headers"], lessons=0, publish=False)

    missing_url = client.post(
        f"{API}/lessons/",
        json=video_lesson(course["id"], content={"text_content": "not a video"}),
        headers=instructor["headers"],
    )
    assert missing_url.status_code == 422

    lesson = client.post(
        f"{API}/lessons/", json=video_lesson(course["id"]), headers=instructor["headers"]
    ).json()

    # Switching type without matching content is rejected
    switched = client.put(
        f"{API}/lessons/{lesson['id']}", json={"type": "document"}, headers=instructor["headers"]
    )
    assert switched.status_code == 400

    ok = client.put(
        f"{API}/lessons/{lesson['id']}",
        json={"type": "document", "content": {"document_url": "https://cdn.example.com/a.pdf"}},
        headers=instructor["headers"],
    )
    assert ok.status_code == 200
    assert ok.json()["type"] == "document"


def test_only_course_manager_adds_lessons(client, instructor, register, student, make_course):
    course, _ = make_course(instructor["headers"], lessons=0, publish=False)
    other = register("instructor")

    denied = client.post(
        f"{API}/lessons/", json=video_lesson(course["id"]), headers=other["headers"]
    )
    assert denied.status_code == 403

    student_denied = client.post(
        f"{API}/lessons/", json=video_lesson(course["id"]), headers=student["headers"]
    )
    assert student_denied.status_code == 403

    missing = client.post(
        f"{API}/lessons/", json=video_lesson(9999), headers=instructor["headers"]
    )
    assert missing.status_code == 404


def test_course_lessons_respect_access(client, instructor, student, make_course, enroll):
    course, lessons = make_course(instructor["headers"], lessons=2)
    preview = client.post(
        f"{API}/lessons/",
        json=video_lesson(course["id"], section="Appendix"),
        headers=instructor["headers"],
    ).json()

    outsider = client.get(
        f"{API}/lessons/course/{course['id']}", headers=student["headers"]
    ).json()
    assert outsider["has_full_access"] is False
    assert [lesson["id"] for lesson in outsider["lessons"]] == [preview["id"]]
    assert outsider["total"] == 1

    enroll(student["headers"], course["id"])
    enrolled = client.get(
        f"{API}/lessons/course/{course['id']}", headers=student["headers"]
    ).json()
    assert enrolled["has_full_access"] is True
    # Sorted by section, then order
    assert [lesson["id"] for lesson in enrolled["lessons"]] == [
        preview["id"],
        lessons[0]["id"],
        lessons[1]["id"],
    ]

    assert client.get(f"{API}/lessons/course/{course['id']}").status_code == 401


def test_single_lesson_access(client, instructor, student, make_course, enroll):
    course, lessons = make_course(instructor["headers"], lessons=1)
    url = f"{API}/lessons/{lessons[0]['id']}"

    locked = client.get(url, headers=student["headers"])
    assert locked.status_code == 403

    enrollment = enroll(student["headers"], course["id"])
    assert client.get(url, headers=student["headers"]).status_code == 200

    # Suspended students lose access to locked lessons
    client.put(
        f"{API}/enrollments/{enrollment['id']}/status",
        json={"status": "suspended"},
        headers=instructor["headers"],
    )
    assert client.get(url, headers=student["headers"]).status_code == 403

    assert client.get(url, headers=instructor["headers"]).status_code == 200
    assert client.get(f"{API}/lessons/9999", headers=student["headers"]).status_code == 404


def test_free_lesson_is_open(client, instructor, student, make_course):
    course, lessons = make_course(instructor["headers"], lessons=1)
    client.put(
        f"{API}/lessons/{lessons[0]['id']}", json={"is_free": True}, headers=instructor["headers"]
    )

    response = client.get(f"{API}/lessons/{lessons[0]['id']}", headers=student["headers"])
    assert response.status_code == 200
    assert response.json()["is_free"] is True


def test_delete_lesson(client, instructor, register, make_course):
    course, lessons = make_course(instructor["headers"], lessons=2)
    other = register("instructor")

    denied = client.delete(f"{API}/lessons/{lessons[0]['id']}", headers=other["headers"])
    assert denied.status_code == 403

    response = client.delete(f"{API}/lessons/{lessons[0]['id']}", headers=instructor["headers"])
    assert response.status_code == 200

    remaining = client.get(
        f"{API}/lessons/course/{course['id']}", headers=instructor["headers"]
    ).json()
    assert [lesson["id"] for lesson in remaining["lessons"]] == [lessons[1]["id"]]
