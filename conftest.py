import os
import tempfile
from itertools import count

import pytest

TEST_DIR = tempfile.mkdtemp(prefix="elearning-tests-")

os.environ.update(
    {
        "DATABASE_URL": f"sqlite:///{os.path.join(TEST_DIR, 'test.db')}",
        "UPLOAD_DIR": os.path.join(TEST_DIR, "storage"),
        "DEBUG": "false",
        "REDIS_ENABLED": "false",
        "RATE_LIMIT_ENABLED": "false",
        "RATE_LIMIT_STORAGE_URI": "memory://",
        "SCHEDULER_ENABLED": "false",
        "PASSWORD_HASH_ROUNDS": "4",
        "ADMIN_DEFAULT_EMAIL": "admin@example.com",
        "ADMIN_DEFAULT_PASSWORD": "Admin@123",
    }
)

from fastapi.testclient import TestClient  # noqa: E402

from elearning.core.database import Base, SessionLocal, engine  # noqa: E402
from elearning.core.init import init_default_admin  # noqa: E402
from elearning.core.security import token_blacklist  # noqa: E402
from main import app  # noqa: E402

API = "/api"
PASSWORD = "secret123"

_emails = count(1)


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    token_blacklist.clear()

    db = SessionLocal()
    try:
        init_default_admin(db)
    finally:
        db.close()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    """Register a user and return its id, email, tokens and auth headers"""

    def _register(role="student", first_name="Test", last_name="User", email=None):
        email = email or f"{role}{next(_emails)}@example.com"
        response = client.post(
            f"{API}/auth/register",
            json={
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "password": PASSWORD,
                "role": role,
            },
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "id": body["user"]["id"],
            "email": email,
            "access_token": body["access_token"],
            "refresh_token": body["refresh_token"],
            "headers": bearer(body["access_token"]),
        }

    return _register


@pytest.fixture
def admin_headers(client):
    response = client.post(
        f"{API}/auth/login",
        json={"email": "admin@example.com", "password": "Admin@123"},
    )
    assert response.status_code == 200, response.text
    return bearer(response.json()["access_token"])


@pytest.fixture
def instructor(register):
    return register("instructor", first_name="Ada", last_name="Lovelace")


@pytest.fixture
def student(register):
    return register("student", first_name="Alan", last_name="Turing")


def course_payload(**overrides):
    data = {
        "title": "Python Fundamentals",
        "description": "Learn Python from the ground up",
        "category": "Web Development",
        "level": "Beginner",
        "duration": 10,
        "price": 50,
        "what_you_will_learn": ["Variables", "Functions"],
        "tags": ["Python", " Basics "],
    }
    data.update(overrides)
    return data


def lesson_payload(course_id, order, **overrides):
    data = {
        "course_id": course_id,
        "title": f"Lesson {order}",
        "section": "Basics",
        "order": order,
        "type": "text",
        "content": {"text_content": f"Content of lesson {order}"},
        "is_published": True,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_course(client):
    """Create a course with ``lessons`` text lessons, published by default"""

    def _make_course(headers, lessons=2, publish=True, **overrides):
        response = client.post(f"{API}/courses/", json=course_payload(**overrides), headers=headers)
        assert response.status_code == 201, response.text
        course = response.json()

        created = []
        for order in range(1, lessons + 1):
            response = client.post(
                f"{API}/lessons/", json=lesson_payload(course["id"], order), headers=headers
            )
            assert response.status_code == 201, response.text
            created.append(response.json())

        if publish:
            response = client.put(
                f"{API}/courses/{course['id']}/publish",
                json={"is_published": True},
                headers=headers,
            )
            assert response.status_code == 200, response.text
            course = response.json()
        return course, created

    return _make_course


@pytest.fixture
def enroll(client):
    def _enroll(headers, course_id):
        response = client.post(
            f"{API}/enrollments/", json={"course_id": course_id}, headers=headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _enroll
