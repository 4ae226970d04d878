API = "/api"


def test_admin_lists_and_filters_users(client, admin_headers, register):
    register("student", first_name="Marie", last_name="Curie")
    register("instructor", first_name="Niels", last_name="Bohr")

    response = client.get(f"{API}/users/", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["page"] == 1
    assert body["total_pages"] == 1

    instructors = client.get(f"{API}/users/?role=instructor", headers=admin_headers).json()
    assert [u["last_name"] for u in instructors["users"]] == ["Bohr"]

    found = client.get(
        f"{API}/users/", params={"search": "marie curie"}, headers=admin_headers
    ).json()
    assert found["total"] == 1
    assert found["users"][0]["first_name"] == "Marie"


def test_user_listing_is_admin_only(client, student):
    response = client.get(f"{API}/users/", headers=student["headers"])
    assert response.status_code == 403


def test_users_read_only_their_own_profile(client, register, admin_headers):
    alice = register()
    bob = register()

    assert client.get(f"{API}/users/{alice['id']}", headers=alice["headers"]).status_code == 200
    assert client.get(f"{API}/users/{alice['id']}", headers=bob["headers"]).status_code == 403
    assert client.get(f"{API}/users/{alice['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"{API}/users/9999", headers=admin_headers).status_code == 404


def test_own_profile_endpoints(client, student):
    response = client.put(
        f"{API}/users/profile",
        json={"phone": "+44 20 7946 0000", "social_links": {"github": "https://github.com/alan"}},
        headers=student["headers"],
    )
    assert response.status_code == 200

    profile = client.get(f"{API}/users/profile", headers=student["headers"]).json()
    assert profile["phone"] == "+44 20 7946 0000"
    assert profile["social_links"]["github"] == "https://github.com/alan"


def test_admin_updates_user_and_email_uniqueness(client, admin_headers, register):
    alice = register()
    bob = register()

    response = client.put(
        f"{API}/users/{alice['id']}",
        json={"first_name": "Alicia", "email": "Alicia@Example.com"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["email"] == "alicia@example.com"

    taken = client.put(
        f"{API}/users/{bob['id']}",
        json={"email": "alicia@example.com"},
        headers=admin_headers,
    )
    assert taken.status_code == 400


def test_admin_changes_role(client, admin_headers, student):
    response = client.put(
        f"{API}/users/{student['id']}/role",
        json={"role": "instructor"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "instructor"

    invalid = client.put(
        f"{API}/users/{student['id']}/role",
        json={"role": "superuser"},
        headers=admin_headers,
    )
    assert invalid.status_code == 422


def test_admin_cannot_demote_or_deactivate_self(client, admin_headers):
    me = client.get(f"{API}/users/profile", headers=admin_headers).json()

    role = client.put(
        f"{API}/users/{me['id']}/role", json={"role": "student"}, headers=admin_headers
    )
    assert role.status_code == 400

    deactivate = client.put(
        f"{API}/users/{me['id']}/status", json={"is_active": False}, headers=admin_headers
    )
    assert deactivate.status_code == 400

    delete = client.delete(f"{API}/users/{me['id']}", headers=admin_headers)
    assert delete.status_code == 400


def test_delete_user_without_history(client, admin_headers, student):
    response = client.delete(f"{API}/users/{student['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["deleted"] is True

    assert client.get(f"{API}/users/{student['id']}", headers=admin_headers).status_code == 404


def test_delete_user_with_enrollment_deactivates(
    client, admin_headers, instructor, student, make_course, enroll
):
    course, _ = make_course(instructor["headers"])
    enroll(student["headers"], course["id"])

    response = client.delete(f"{API}/users/{student['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["deleted"] is False

    user = client.get(f"{API}/users/{student['id']}", headers=admin_headers).json()
    assert user["is_active"] is False


def test_avatar_upload_rejects_non_images(client, student):
    response = client.post(
        f"{API}/users/avatar",
        files={"image": ("notes.txt", b"plain text", "text/plain")},
        headers=student["headers"],
    )
    assert response.status_code == 400
