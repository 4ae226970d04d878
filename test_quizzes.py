from datetime import timedelta

import pytest

from elearning.models.quiz import Quiz, QuizQuestion
from elearning.models.quiz_attempt import QuizAttempt
from elearning.services.quiz_attempt import auto_grade
from elearning.utils.timeframe import utcnow

API = "/api"


def questions():
    return [
        {
            "question": "Which keyword defines a function?",
            "type": "multiple-choice",
            "options": [
                {"text": "func", "is_correct": False},
                {"text": "def", "is_correct": True},
            ],
            "points": 2,
        },
        {
            "question": "Python is dynamically typed",
            "type": "true-false",
            "correct_answer": "True",
        },
        {
            "question": "Name the language of this course",
            "type": "short-answer",
            "correct_answer": "Python",
        },
        {
            "question": "Explain list comprehensions",
            "type": "essay",
            "points": 2,
        },
    ]


@pytest.fixture
def course(instructor, make_course):
    course, _ = make_course(instructor["headers"], lessons=1)
    return course


@pytest.fixture
def make_quiz(client, instructor):
    def _make_quiz(course_id, **overrides):
        payload = {
            "title": "Python basics check",
            "course_id": course_id,
            "questions": questions(),
            "is_published": True,
            "passing_score": 70,
        }
        payload.update(overrides)
        response = client.post(f"{API}/quizzes/", json=payload, headers=instructor["headers"])
        assert response.status_code == 201, response.text
        return response.json()

    return _make_quiz


def start(client, headers, quiz_id):
    return client.post(f"{API}/quizzes/{quiz_id}/attempt", headers=headers)


def answer(client, headers, attempt_id, question_id, value):
    return client.put(
        f"{API}/quizzes/attempts/{attempt_id}/answer",
        json={"question_id": question_id, "answer": value},
        headers=headers,
    )


def test_create_quiz_totals_points(client, course, make_quiz):
    quiz = make_quiz(course["id"])
    assert quiz["total_points"] == 6
    assert [q["position"] for q in quiz["questions"]] == [1, 2, 3, 4]
    # True/false answers are normalized
    assert quiz["questions"][1]["correct_answer"] == "true"
    assert quiz["instructor_id"] is not None


@pytest.mark.parametrize(
    "question",
    [
        {"question": "Pick one", "type": "multiple-choice", "options": [{"text": "a", "is_correct": True}]},
        {
            "question": "Pick one",
            "type": "multiple-choice",
            "options": [{"text": "a"}, {"text": "b"}],
        },
        {"question": "True?", "type": "true-false", "correct_answer": "yes"},
        {"question": "Say it", "type": "short-answer", "correct_answer": "  "},
    ],
)
def test_question_answer_key_is_validated(client, instructor, course, question):
    response = client.post(
        f"{API}/quizzes/",
        json={"title": "Broken", "course_id": course["id"], "questions": [question]},
        headers=instructor["headers"],
    )
    assert response.status_code == 422


def test_cannot_publish_quiz_without_questions(client, instructor, course):
    response = client.post(
        f"{API}/quizzes/",
        json={"title": "Empty", "course_id": course["id"], "is_published": True},
        headers=instructor["headers"],
    )
    assert response.status_code == 400

    draft = client.post(
        f"{API}/quizzes/",
        json={"title": "Empty", "course_id": course["id"]},
        headers=instructor["headers"],
    ).json()
    toggled = client.put(f"{API}/quizzes/{draft['id']}/publish", headers=instructor["headers"])
    assert toggled.status_code == 400


def test_quiz_creation_is_limited_to_course_managers(client, register, course):
    other = register("instructor")
    response = client.post(
        f"{API}/quizzes/",
        json={"title": "Sneaky", "course_id": course["id"], "questions": questions()},
        headers=other["headers"],
    )
    assert response.status_code == 403


def test_students_do_not_see_the_answer_key(client, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"])
    enroll(student["headers"], course["id"])

    body = client.get(f"{API}/quizzes/{quiz['id']}", headers=student["headers"]).json()
    first = body["questions"][0]
    assert first["correct_answer"] is None
    assert first["options"] == [{"text": "func"}, {"text": "def"}]

    draft = make_quiz(course["id"], title="Draft", is_published=False)
    assert client.get(f"{API}/quizzes/{draft['id']}", headers=student["headers"]).status_code == 404

    listed = client.get(f"{API}/quizzes/course/{course['id']}", headers=student["headers"]).json()
    assert [q["id"] for q in listed] == [quiz["id"]]
    assert listed[0]["question_count"] == 4


def test_course_quizzes_require_enrollment(client, student, course, make_quiz):
    make_quiz(course["id"])
    response = client.get(f"{API}/quizzes/course/{course['id']}", headers=student["headers"])
    assert response.status_code == 403


def test_full_attempt_flow(client, instructor, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"])
    q = {item["type"]: item["id"] for item in quiz["questions"]}
    enroll(student["headers"], course["id"])

    started = start(client, student["headers"], quiz["id"])
    assert started.status_code == 201
    attempt_id = started.json()["attempt_id"]
    assert started.json()["attempt_number"] == 1

    mc = answer(client, student["headers"], attempt_id, q["multiple-choice"], "def").json()
    assert mc == {"is_correct": True, "points_earned": 2}
    tf = answer(client, student["headers"], attempt_id, q["true-false"], True).json()
    assert tf["is_correct"] is True
    short = answer(client, student["headers"], attempt_id, q["short-answer"], " python ").json()
    assert short["is_correct"] is True
    essay = answer(client, student["headers"], attempt_id, q["essay"], "They build lists").json()
    assert essay == {"is_correct": False, "points_earned": 0}

    # Answering again replaces the previous answer
    wrong = answer(client, student["headers"], attempt_id, q["multiple-choice"], "func").json()
    assert wrong["is_correct"] is False
    answer(client, student["headers"], attempt_id, q["multiple-choice"], "def")

    submitted = client.post(
        f"{API}/quizzes/attempts/{attempt_id}/submit", headers=student["headers"]
    )
    assert submitted.status_code == 200
    body = submitted.json()
    assert body["attempt"]["status"] == "submitted"
    assert body["attempt"]["score"] == 4
    assert body["attempt"]["percentage"] == 67
    assert body["attempt"]["is_passed"] is False
    assert body["results"]["correct_answers"] == 3
    assert len(body["results"]["answers"]) == 4

    late = answer(client, student["headers"], attempt_id, q["essay"], "more")
    assert late.status_code == 400

    # Manual grading of the essay
    too_many = client.put(
        f"{API}/quizzes/attempts/{attempt_id}/grade",
        json={"question_id": q["essay"], "points": 3},
        headers=instructor["headers"],
    )
    assert too_many.status_code == 400

    graded = client.put(
        f"{API}/quizzes/attempts/{attempt_id}/grade",
        json={"question_id": q["essay"], "points": 2, "feedback": "Well explained"},
        headers=instructor["headers"],
    ).json()
    assert graded["score"] == 6
    assert graded["percentage"] == 100
    assert graded["is_passed"] is True

    results = client.get(
        f"{API}/quizzes/attempts/{attempt_id}/results", headers=student["headers"]
    ).json()
    essay_result = next(a for a in results["results"]["answers"] if a["question_id"] == q["essay"])
    assert essay_result["feedback"] == "Well explained"
    assert results["quiz"]["course_title"] == course["title"]

    history = client.get(f"{API}/quizzes/student/attempts", headers=student["headers"]).json()
    assert history["total"] == 1
    assert history["attempts"][0]["quiz_title"] == quiz["title"]


def test_attempt_rules(client, student, register, course, make_quiz, enroll):
    quiz = make_quiz(course["id"], attempts_allowed=1)

    outsider = register()
    assert start(client, outsider["headers"], quiz["id"]).status_code == 403

    draft = make_quiz(course["id"], title="Draft", is_published=False)
    enroll(student["headers"], course["id"])
    assert start(client, student["headers"], draft["id"]).status_code == 404

    first = start(client, student["headers"], quiz["id"]).json()
    busy = start(client, student["headers"], quiz["id"])
    assert busy.status_code == 400
    assert busy.json()["detail"]["attempt_id"] == first["attempt_id"]

    client.post(f"{API}/quizzes/attempts/{first['attempt_id']}/submit", headers=student["headers"])
    limited = start(client, student["headers"], quiz["id"])
    assert limited.status_code == 400
    assert limited.json()["detail"] == "Maximum attempts reached"


def test_attempt_belongs_to_student(client, student, register, course, make_quiz, enroll):
    quiz = make_quiz(course["id"])
    enroll(student["headers"], course["id"])
    attempt_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]

    other = register()
    response = answer(client, other["headers"], attempt_id, quiz["questions"][0]["id"], "def")
    assert response.status_code == 403


def test_results_hidden_until_due_date(client, instructor, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"], show_results="after-due-date")
    enroll(student["headers"], course["id"])
    attempt_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]

    submitted = client.post(
        f"{API}/quizzes/attempts/{attempt_id}/submit", headers=student["headers"]
    ).json()
    assert submitted["results"] is None

    hidden = client.get(f"{API}/quizzes/attempts/{attempt_id}/results", headers=student["headers"])
    assert hidden.status_code == 403

    manager = client.get(
        f"{API}/quizzes/attempts/{attempt_id}/results", headers=instructor["headers"]
    )
    assert manager.status_code == 200
    assert "answers" in manager.json()["results"]


def test_results_after_due_date_need_a_finished_attempt(
    client, db, student, course, make_quiz, enroll
):
    quiz = make_quiz(course["id"], show_results="after-due-date", due_date="2099-01-01T00:00:00")
    enroll(student["headers"], course["id"])
    attempt_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]

    row = db.query(Quiz).filter(Quiz.id == quiz["id"]).one()
    row.due_date = utcnow() - timedelta(days=1)
    db.commit()

    url = f"{API}/quizzes/attempts/{attempt_id}/results"
    in_progress = client.get(url, headers=student["headers"])
    assert in_progress.status_code == 403
    assert in_progress.json()["detail"] == "Results are not available yet"

    client.post(f"{API}/quizzes/attempts/{attempt_id}/submit", headers=student["headers"])
    finished = client.get(url, headers=student["headers"])
    assert finished.status_code == 200
    assert finished.json()["attempt"]["status"] == "submitted"


def test_time_limit_auto_submits(client, db, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"], time_limit=5, attempts_allowed=2)
    question_id = quiz["questions"][0]["id"]
    enroll(student["headers"], course["id"])

    def expire(attempt_id):
        row = db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).one()
        row.started_at = utcnow() - timedelta(minutes=10)
        db.commit()
        return row

    # Answering after the limit closes the attempt
    first_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]
    row = expire(first_id)
    late = answer(client, student["headers"], first_id, question_id, "def")
    assert late.status_code == 400
    assert late.json()["detail"] == "Time limit exceeded; the attempt has been submitted"

    db.refresh(row)
    assert row.status == "auto-submitted"
    assert row.submitted_at is not None
    assert row.time_spent >= 600

    # Submitting late marks the attempt as auto-submitted
    second_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]
    assert answer(client, student["headers"], second_id, question_id, "def").status_code == 200
    expire(second_id)
    submitted = client.post(
        f"{API}/quizzes/attempts/{second_id}/submit", headers=student["headers"]
    )
    assert submitted.status_code == 200
    assert submitted.json()["attempt"]["status"] == "auto-submitted"
    assert submitted.json()["attempt"]["score"] == 2


def test_attempts_respect_availability_window(client, db, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"], available_from="2099-01-01T00:00:00")
    enroll(student["headers"], course["id"])

    early = start(client, student["headers"], quiz["id"])
    assert early.status_code == 400
    assert early.json()["detail"] == "Quiz is not yet available"

    row = db.query(Quiz).filter(Quiz.id == quiz["id"]).one()
    row.available_from = utcnow() - timedelta(days=2)
    row.available_until = utcnow() - timedelta(days=1)
    db.commit()

    closed = start(client, student["headers"], quiz["id"])
    assert closed.status_code == 400
    assert closed.json()["detail"] == "Quiz is no longer available"

    row.available_until = utcnow() + timedelta(days=1)
    db.commit()
    assert start(client, student["headers"], quiz["id"]).status_code == 201


def test_results_without_correct_answers(client, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"], show_correct_answers=False)
    enroll(student["headers"], course["id"])
    attempt_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]

    body = client.post(
        f"{API}/quizzes/attempts/{attempt_id}/submit", headers=student["headers"]
    ).json()
    assert body["results"]["total_questions"] == 4
    assert "answers" not in body["results"]


def test_duplicate_and_locked_questions(client, instructor, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"])

    copy = client.post(f"{API}/quizzes/{quiz['id']}/duplicate", headers=instructor["headers"])
    assert copy.status_code == 201
    assert copy.json()["title"] == "Python basics check (Copy)"
    assert copy.json()["is_published"] is False
    assert len(copy.json()["questions"]) == 4

    enroll(student["headers"], course["id"])
    start(client, student["headers"], quiz["id"])

    locked = client.put(
        f"{API}/quizzes/{quiz['id']}",
        json={"questions": questions()[:1]},
        headers=instructor["headers"],
    )
    assert locked.status_code == 400

    settings_only = client.put(
        f"{API}/quizzes/{quiz['id']}", json={"passing_score": 50}, headers=instructor["headers"]
    )
    assert settings_only.status_code == 200
    assert settings_only.json()["passing_score"] == 50

    # The copy has no attempts, so its questions can change
    replaced = client.put(
        f"{API}/quizzes/{copy.json()['id']}",
        json={"questions": questions()[:1]},
        headers=instructor["headers"],
    ).json()
    assert replaced["total_points"] == 2


def test_certificate_requires_quiz_score(client, instructor, student, make_course, make_quiz, enroll):
    course, lessons = make_course(instructor["headers"], lessons=1, certificate_quiz_score=80)
    quiz = make_quiz(course["id"], questions=questions()[:1], attempts_allowed=2)
    enrollment = enroll(student["headers"], course["id"])
    client.put(
        f"{API}/enrollments/{enrollment['id']}/progress",
        json={"lesson_id": lessons[0]["id"]},
        headers=student["headers"],
    )
    url = f"{API}/enrollments/{enrollment['id']}/certificate"

    assert client.post(url, headers=student["headers"]).status_code == 400

    attempt_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]
    answer(client, student["headers"], attempt_id, quiz["questions"][0]["id"], "def")
    client.post(f"{API}/quizzes/attempts/{attempt_id}/submit", headers=student["headers"])

    assert client.post(url, headers=student["headers"]).status_code == 201


def test_quiz_analytics_and_overview(client, instructor, student, course, make_quiz, enroll):
    quiz = make_quiz(course["id"])
    enroll(student["headers"], course["id"])
    attempt_id = start(client, student["headers"], quiz["id"]).json()["attempt_id"]
    answer(client, student["headers"], attempt_id, quiz["questions"][0]["id"], "def")
    client.post(f"{API}/quizzes/attempts/{attempt_id}/submit", headers=student["headers"])

    analytics = client.get(
        f"{API}/quizzes/{quiz['id']}/analytics", headers=instructor["headers"]
    ).json()
    assert analytics["analytics"]["total_attempts"] == 1
    assert analytics["analytics"]["completion_rate"] == 100
    assert analytics["question_analytics"][0]["correct_percentage"] == 100
    assert analytics["question_analytics"][1]["total_answers"] == 0

    overview = client.get(f"{API}/quizzes/stats/overview", headers=instructor["headers"]).json()
    assert overview["stats"]["total_quizzes"] == 1
    assert overview["stats"]["recent_attempts"][0]["student_name"] == "Alan Turing"

    attempts = client.get(
        f"{API}/quizzes/{quiz['id']}/attempts", headers=instructor["headers"]
    ).json()
    assert attempts["attempts"][0]["progress"]["questions_answered"] == 1

    mine = client.get(f"{API}/quizzes/instructor", headers=instructor["headers"]).json()
    assert mine["quizzes"][0]["attempt_count"] == 1

    feedback = client.put(
        f"{API}/quizzes/attempts/{attempt_id}/feedback",
        json={"feedback": "Keep going"},
        headers=instructor["headers"],
    )
    assert feedback.json()["feedback"] == "Keep going"

    deleted = client.delete(f"{API}/quizzes/attempts/{attempt_id}", headers=instructor["headers"])
    assert deleted.status_code == 200


def test_delete_quiz(client, instructor, register, course, make_quiz):
    quiz = make_quiz(course["id"])
    other = register("instructor")

    assert client.delete(f"{API}/quizzes/{quiz['id']}", headers=other["headers"]).status_code == 403
    assert client.delete(f"{API}/quizzes/{quiz['id']}", headers=instructor["headers"]).status_code == 200
    assert client.get(f"{API}/quizzes/{quiz['id']}", headers=instructor["headers"]).status_code == 404


# ==================== Units ====================


def test_auto_grade():
    mc = QuizQuestion(
        type="multiple-choice",
        points=2,
        options=[{"text": "def", "is_correct": True}, {"text": "func", "is_correct": False}],
    )
    assert auto_grade(mc, "def") == (True, 2)
    assert auto_grade(mc, "DEF") == (False, 0)

    tf = QuizQuestion(type="true-false", points=1, correct_answer="false")
    assert auto_grade(tf, False) == (True, 1)
    assert auto_grade(tf, "FALSE ") == (True, 1)

    essay = QuizQuestion(type="essay", points=5)
    assert auto_grade(essay, "anything") == (False, 0)
