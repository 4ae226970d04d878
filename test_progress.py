from datetime import date, datetime

import pytest

from elearning.models.progress import MAX_INTERACTIONS, Progress, ProgressInteraction
from elearning.services.progress import ProgressService, most_active_day, study_streak
from elearning.utils.timeframe import utcnow

API = "/api"


@pytest.fixture
def enrolled(instructor, student, make_course, enroll):
    course, lessons = make_course(instructor["headers"], lessons=2)
    enrollment = enroll(student["headers"], course["id"])
    return course, lessons, enrollment


def track(client, headers, course_id, lesson_id, **fields):
    payload = {"course_id": course_id, "lesson_id": lesson_id, "time_spent": 30}
    payload.update(fields)
    return client.post(f"{API}/progress/", json=payload, headers=headers)


def test_progress_starts_and_accumulates(client, student, enrolled):
    course, lessons, _ = enrolled

    first = track(
        client, student["headers"], course["id"], lessons[0]["id"],
        completion_percentage=40, last_position=120,
    )
    assert first.status_code == 200
    body = first.json()
    assert body["status"] == "in-progress"
    assert body["completion_percentage"] == 40
    assert body["last_position"] == 120
    assert body["watch_count"] == 1

    second = track(client, student["headers"], course["id"], lessons[0]["id"]).json()
    assert second["time_spent"] == 60
    assert second["watch_count"] == 2
    assert second["completion_percentage"] == 40


def test_reaching_threshold_completes_lesson_and_enrollment(client, student, enrolled):
    course, lessons, enrollment = enrolled

    done = track(
        client, student["headers"], course["id"], lessons[0]["id"], completion_percentage=85
    ).json()
    assert done["status"] == "completed"
    assert done["completed_at"] is not None

    synced = client.get(
        f"{API}/enrollments/{enrollment['id']}", headers=student["headers"]
    ).json()
    assert synced["completion_percentage"] == 50
    assert synced["completed_lessons_count"] == 1
    assert synced["total_time_spent"] == 30

    track(client, student["headers"], course["id"], lessons[1]["id"], completion_percentage=150)
    finished = client.get(
        f"{API}/enrollments/{enrollment['id']}", headers=student["headers"]
    ).json()
    assert finished["status"] == "completed"
    assert finished["completion_percentage"] == 100


def test_completion_percentage_is_clamped(client, student, enrolled):
    course, lessons, _ = enrolled

    body = track(
        client, student["headers"], course["id"], lessons[0]["id"], completion_percentage=-20
    ).json()
    assert body["completion_percentage"] == 0
    assert body["status"] == "not-started"


def test_progress_requires_enrollment(client, instructor, register, make_course):
    course, lessons = make_course(instructor["headers"])
    outsider = register()

    response = track(client, outsider["headers"], course["id"], lessons[0]["id"])
    assert response.status_code == 403


def test_progress_rejects_lesson_from_other_course(client, instructor, student, enrolled, make_course):
    course, _, _ = enrolled
    _, other_lessons = make_course(instructor["headers"], title="Other")

    response = track(client, student["headers"], course["id"], other_lessons[0]["id"])
    assert response.status_code == 404


def test_suspended_enrollment_blocks_progress(client, instructor, student, enrolled):
    course, lessons, enrollment = enrolled
    client.put(
        f"{API}/enrollments/{enrollment['id']}/status",
        json={"status": "suspended"},
        headers=instructor["headers"],
    )

    response = track(client, student["headers"], course["id"], lessons[0]["id"])
    assert response.status_code == 403

    # Reading stays possible
    overview = client.get(f"{API}/progress/course/{course['id']}", headers=student["headers"])
    assert overview.status_code == 200


def test_course_progress_overview(client, student, enrolled):
    course, lessons, _ = enrolled
    track(client, student["headers"], course["id"], lessons[1]["id"], completion_percentage=90)
    track(client, student["headers"], course["id"], lessons[0]["id"], completion_percentage=10)

    body = client.get(f"{API}/progress/course/{course['id']}", headers=student["headers"]).json()
    assert [p["lesson_id"] for p in body["progress"]] == [lessons[0]["id"], lessons[1]["id"]]
    assert body["stats"] == {
        "total_lessons": 2,
        "completed_lessons": 1,
        "overall_progress": 50,
        "total_time_spent": 60,
    }

    lesson = client.get(
        f"{API}/progress/lesson/{lessons[1]['id']}", headers=student["headers"]
    ).json()
    assert lesson["lesson"]["title"] == "Lesson 2"


def test_notes_lifecycle(client, student, enrolled):
    course, lessons, _ = enrolled
    lesson_id = lessons[0]["id"]

    missing = client.post(
        f"{API}/progress/{lesson_id}/notes",
        json={"content": "Too early", "timestamp": 5},
        headers=student["headers"],
    )
    assert missing.status_code == 404

    track(client, student["headers"], course["id"], lesson_id)

    blank = client.post(
        f"{API}/progress/{lesson_id}/notes", json={"content": "   "}, headers=student["headers"]
    )
    assert blank.status_code == 422

    created = client.post(
        f"{API}/progress/{lesson_id}/notes",
        json={"content": " Loops are neat ", "timestamp": 42},
        headers=student["headers"],
    )
    assert created.status_code == 201
    note = created.json()
    assert note["content"] == "Loops are neat"
    assert note["timestamp"] == 42

    updated = client.put(
        f"{API}/progress/{lesson_id}/notes/{note['id']}",
        json={"content": "Loops are great"},
        headers=student["headers"],
    ).json()
    assert updated["content"] == "Loops are great"
    assert updated["timestamp"] == 42

    deleted = client.delete(
        f"{API}/progress/{lesson_id}/notes/{note['id']}", headers=student["headers"]
    )
    assert deleted.status_code == 200

    again = client.delete(
        f"{API}/progress/{lesson_id}/notes/{note['id']}", headers=student["headers"]
    )
    assert again.status_code == 404


def test_bookmarks_keep_a_minimum_gap(client, student, enrolled):
    course, lessons, _ = enrolled
    lesson_id = lessons[0]["id"]
    track(client, student["headers"], course["id"], lesson_id)

    first = client.post(
        f"{API}/progress/{lesson_id}/bookmarks",
        json={"name": "Definition", "timestamp": 100},
        headers=student["headers"],
    )
    assert first.status_code == 201

    too_close = client.post(
        f"{API}/progress/{lesson_id}/bookmarks",
        json={"name": "Example", "timestamp": 104},
        headers=student["headers"],
    )
    assert too_close.status_code == 400

    far_enough = client.post(
        f"{API}/progress/{lesson_id}/bookmarks",
        json={"name": "Example", "timestamp": 105},
        headers=student["headers"],
    )
    assert far_enough.status_code == 201

    removed = client.delete(
        f"{API}/progress/{lesson_id}/bookmarks/{first.json()['id']}", headers=student["headers"]
    )
    assert removed.status_code == 200

    record = client.get(f"{API}/progress/lesson/{lesson_id}", headers=student["headers"]).json()
    assert [b["name"] for b in record["bookmarks"]] == ["Example"]


def test_track_interaction(client, student, enrolled):
    course, lessons, _ = enrolled
    lesson_id = lessons[0]["id"]
    track(client, student["headers"], course["id"], lesson_id)

    response = client.post(
        f"{API}/progress/{lesson_id}/interaction",
        json={"type": "seek", "timestamp": 30, "data": {"from": 10}},
        headers=student["headers"],
    )
    assert response.status_code == 200
    assert response.json()["type"] == "seek"
    assert response.json()["data"] == {"from": 10}

    invalid = client.post(
        f"{API}/progress/{lesson_id}/interaction",
        json={"type": "rewind"},
        headers=student["headers"],
    )
    assert invalid.status_code == 422


def test_interaction_log_keeps_newest_rows(client, db, student, enrolled):
    course, lessons, _ = enrolled
    lesson_id = lessons[0]["id"]
    record = track(client, student["headers"], course["id"], lesson_id).json()

    for position in range(MAX_INTERACTIONS + 5):
        response = client.post(
            f"{API}/progress/{lesson_id}/interaction",
            json={"type": "play", "timestamp": position},
            headers=student["headers"],
        )
        assert response.status_code == 200

    rows = (
        db.query(ProgressInteraction)
        .filter(ProgressInteraction.progress_id == record["id"])
        .order_by(ProgressInteraction.id)
        .all()
    )
    assert len(rows) == MAX_INTERACTIONS
    assert rows[0].timestamp == 5
    assert rows[-1].timestamp == MAX_INTERACTIONS + 4


def test_learning_analytics(client, student, enrolled):
    course, lessons, _ = enrolled
    lesson_id = lessons[0]["id"]
    track(client, student["headers"], course["id"], lesson_id, completion_percentage=100)
    client.post(
        f"{API}/progress/{lesson_id}/notes",
        json={"content": "Remember this"},
        headers=student["headers"],
    )

    body = client.get(
        f"{API}/progress/analytics/{course['id']}", headers=student["headers"]
    ).json()
    assert body["course_progress"]["completed_lessons"] == 1
    assert body["study_habits"]["total_notes"] == 1
    assert body["study_habits"]["study_streak"] == 1
    assert body["study_habits"]["total_study_time"] == 30
    assert body["lesson_progress"][0]["notes_count"] == 1

    week = body["weekly_progress"]
    assert len(week) == 7
    assert week[-1]["date"] == utcnow().date().isoformat()
    assert week[-1]["lessons_accessed"] == 1
    assert week[-1]["notes_added"] == 1


def test_learning_analytics_requires_enrollment(client, instructor, register, make_course):
    course, _ = make_course(instructor["headers"])
    response = client.get(
        f"{API}/progress/analytics/{course['id']}", headers=register()["headers"]
    )
    assert response.status_code == 403


# ==================== Units ====================


def test_interaction_log_is_capped():
    progress = Progress()
    service = ProgressService(db=None)

    for position in range(MAX_INTERACTIONS + 5):
        service._log_interaction(progress, "play", position)

    assert len(progress.interactions) == MAX_INTERACTIONS
    assert progress.interactions[0].timestamp == 5


def test_study_streak():
    today = date(2024, 3, 10)

    def record(day):
        return Progress(last_access_at=datetime(2024, 3, day, 9, 0))

    assert study_streak([], today) == 0
    assert study_streak([record(10), record(9), record(8), record(6)], today) == 3
    assert study_streak([record(9), record(8)], today) == 2
    assert study_streak([record(7)], today) == 0


def test_most_active_day():
    # 2024-03-04 is a Monday
    records = [
        Progress(last_access_at=datetime(2024, 3, 5, 9, 0)),
        Progress(last_access_at=datetime(2024, 3, 12, 9, 0)),
        Progress(last_access_at=datetime(2024, 3, 4, 9, 0)),
    ]
    assert most_active_day(records) == "Tuesday"
    assert most_active_day([]) == "Monday"
