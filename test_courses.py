API = "/api"


def new_course(**overrides):
    data = {
        "title": "Data Analysis with Pandas",
        "description": "Clean, reshape and explore tabular data",
        "category": "Data Science",
        "level": "Intermediate",
        "duration": 6,
        "price": 80,
        "what_you_will_learn": ["DataFrames"],
    }
    data.update(overrides)
    return data


def test_create_course_normalizes_tags(client, instructor):
    response = client.post(
        f"{API}/courses/",
        json=new_course(tags=[" Pandas ", "NumPy", "  "]),
        headers=instructor["headers"],
    )
    assert response.status_code == 201
    body = response.json()
    assert body["tags"] == ["pandas", "numpy"]
    assert body["instructor_id"] == instructor["id"]
    assert body["is_published"] is False
    assert body["certificate_completion_percentage"] == 100
    assert body["effective_price"] == 80


def test_create_course_validation(client, instructor, student):
    discount = client.post(
        f"{API}/courses/",
        json=new_course(price=20, discount_price=25),
        headers=instructor["headers"],
    )
    assert discount.status_code == 422

    forbidden = client.post(f"{API}/courses/", json=new_course(), headers=student["headers"])
    assert forbidden.status_code == 403

    anonymous = client.post(f"{API}/courses/", json=new_course())
    assert anonymous.status_code == 401


def test_discounted_price(client, instructor):
    response = client.post(
        f"{API}/courses/",
        json=new_course(price=100, discount_price=75),
        headers=instructor["headers"],
    )
    body = response.json()
    assert body["effective_price"] == 75
    assert body["discount_percentage"] == 25


def test_publish_requires_lessons(client, instructor, make_course):
    course, _ = make_course(instructor["headers"], lessons=0, publish=False)

    response = client.put(f"{API}/courses/{course['id']}/publish", headers=instructor["headers"])
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot publish course without lessons"


def test_publish_toggles(client, instructor, make_course):
    course, _ = make_course(instructor["headers"], lessons=1, publish=False)

    published = client.put(
        f"{API}/courses/{course['id']}/publish", headers=instructor["headers"]
    ).json()
    assert published["is_published"] is True
    assert published["published_at"] is not None

    unpublished = client.put(
        f"{API}/courses/{course['id']}/publish", headers=instructor["headers"]
    ).json()
    assert unpublished["is_published"] is False
    assert unpublished["published_at"] == published["published_at"]


def test_catalogue_lists_only_published_courses(client, instructor, make_course):
    make_course(instructor["headers"], title="Published Python")
    make_course(instructor["headers"], title="Draft Python", publish=False)

    body = client.get(f"{API}/courses/").json()
    assert body["total"] == 1
    assert body["courses"][0]["title"] == "Published Python"
    assert body["courses"][0]["is_enrolled"] is None


def test_catalogue_filters_and_search(client, instructor, make_course):
    make_course(instructor["headers"], title="Cheap Python", price=10, tags=["python"])
    make_course(
        instructor["headers"],
        title="Deep Learning",
        category="Machine Learning",
        level="Advanced",
        price=200,
        tags=["pytorch"],
    )

    by_category = client.get(f"{API}/courses/", params={"category": "Machine Learning"}).json()
    assert [c["title"] for c in by_category["courses"]] == ["Deep Learning"]

    by_price = client.get(f"{API}/courses/", params={"max_price": 50}).json()
    assert [c["title"] for c in by_price["courses"]] == ["Cheap Python"]

    by_tag = client.get(f"{API}/courses/", params={"search": "PyTorch"}).json()
    assert [c["title"] for c in by_tag["courses"]] == ["Deep Learning"]

    by_price_asc = client.get(
        f"{API}/courses/", params={"sort_by": "price", "sort_order": "asc"}
    ).json()
    assert [c["title"] for c in by_price_asc["courses"]] == ["Cheap Python", "Deep Learning"]

    invalid = client.get(f"{API}/courses/", params={"category": "Cooking"})
    assert invalid.status_code == 422


def test_catalogue_marks_enrolled_courses(client, instructor, student, make_course, enroll):
    course, _ = make_course(instructor["headers"])
    make_course(instructor["headers"], title="Another course")
    enroll(student["headers"], course["id"])

    body = client.get(f"{API}/courses/", headers=student["headers"]).json()
    flags = {c["id"]: c["is_enrolled"] for c in body["courses"]}
    assert flags[course["id"]] is True
    assert sorted(flags.values()) == [False, True]


def test_course_detail_hides_locked_lessons(client, instructor, student, make_course, enroll):
    course, lessons = make_course(instructor["headers"], lessons=2)
    client.put(
        f"{API}/lessons/{lessons[0]['id']}",
        json={"is_preview": True},
        headers=instructor["headers"],
    )

    anonymous = client.get(f"{API}/courses/{course['id']}").json()
    assert [lesson["id"] for lesson in anonymous["lessons"]] == [lessons[0]["id"]]
    assert anonymous["is_enrolled"] is False
    assert anonymous["enrollment"] is None

    enroll(student["headers"], course["id"])
    enrolled = client.get(f"{API}/courses/{course['id']}", headers=student["headers"]).json()
    assert len(enrolled["lessons"]) == 2
    assert enrolled["is_enrolled"] is True
    assert enrolled["enrollment"]["status"] == "active"

    owner = client.get(f"{API}/courses/{course['id']}", headers=instructor["headers"]).json()
    assert len(owner["lessons"]) == 2


def test_draft_course_is_hidden_from_others(client, instructor, student, make_course):
    course, _ = make_course(instructor["headers"], publish=False)

    assert client.get(f"{API}/courses/{course['id']}").status_code == 404
    assert (
        client.get(f"{API}/courses/{course['id']}", headers=student["headers"]).status_code
        == 404
    )
    assert (
        client.get(f"{API}/courses/{course['id']}", headers=instructor["headers"]).status_code
        == 200
    )


def test_only_owner_or_admin_updates_course(client, instructor, register, admin_headers, make_course):
    course, _ = make_course(instructor["headers"])
    other = register("instructor")

    denied = client.put(
        f"{API}/courses/{course['id']}", json={"title": "Hijacked"}, headers=other["headers"]
    )
    assert denied.status_code == 403

    owner = client.put(
        f"{API}/courses/{course['id']}",
        json={"title": "Python Basics", "tags": ["Beginner "]},
        headers=instructor["headers"],
    )
    assert owner.status_code == 200
    assert owner.json()["title"] == "Python Basics"
    assert owner.json()["tags"] == ["beginner"]

    admin = client.put(
        f"{API}/courses/{course['id']}", json={"level": "Advanced"}, headers=admin_headers
    )
    assert admin.status_code == 200


def test_update_rejects_discount_above_price(client, instructor, make_course):
    course, _ = make_course(instructor["headers"], price=50)

    response = client.put(
        f"{API}/courses/{course['id']}",
        json={"discount_price": 60},
        headers=instructor["headers"],
    )
    assert response.status_code == 400


def test_update_ignores_null_price(client, instructor, make_course):
    course, _ = make_course(instructor["headers"], price=50)
    url = f"{API}/courses/{course['id']}"

    response = client.put(
        url, json={"price": None, "discount_price": 10}, headers=instructor["headers"]
    )
    assert response.status_code == 200
    assert response.json()["price"] == 50
    assert response.json()["discount_price"] == 10

    too_high = client.put(
        url, json={"price": None, "discount_price": 50}, headers=instructor["headers"]
    )
    assert too_high.status_code == 400


def test_delete_course(client, instructor, student, make_course, enroll):
    taken, _ = make_course(instructor["headers"])
    enroll(student["headers"], taken["id"])

    blocked = client.delete(f"{API}/courses/{taken['id']}", headers=instructor["headers"])
    assert blocked.status_code == 400
    assert blocked.json()["detail"] == "Cannot delete course with active enrollments"

    empty, _ = make_course(instructor["headers"], title="Unused")
    deleted = client.delete(f"{API}/courses/{empty['id']}", headers=instructor["headers"])
    assert deleted.status_code == 200
    assert client.get(f"{API}/courses/{empty['id']}", headers=instructor["headers"]).status_code == 404


def test_categories_report_counts(client, instructor, make_course):
    make_course(instructor["headers"])
    make_course(instructor["headers"], title="Draft", publish=False)

    categories = {c["name"]: c["count"] for c in client.get(f"{API}/courses/categories").json()}
    assert categories["Web Development"] == 1
    assert categories["Music"] == 0


def test_featured_and_popular(client, instructor, admin_headers, make_course):
    course, _ = make_course(instructor["headers"])
    assert client.get(f"{API}/courses/featured").json() == []

    client.put(
        f"{API}/courses/admin/{course['id']}/status",
        json={"is_featured": True},
        headers=admin_headers,
    )
    featured = client.get(f"{API}/courses/featured").json()
    assert [c["id"] for c in featured] == [course["id"]]

    popular = client.get(f"{API}/courses/popular").json()
    assert [c["id"] for c in popular] == [course["id"]]


def test_my_courses_filters_by_status(client, instructor, student, make_course):
    make_course(instructor["headers"], title="Live")
    make_course(instructor["headers"], title="Draft", publish=False)

    everything = client.get(f"{API}/courses/my-courses", headers=instructor["headers"]).json()
    assert everything["total"] == 2

    drafts = client.get(
        f"{API}/courses/my-courses", params={"status": "draft"}, headers=instructor["headers"]
    ).json()
    assert [c["title"] for c in drafts["courses"]] == ["Draft"]

    assert client.get(f"{API}/courses/my-courses", headers=student["headers"]).status_code == 403


def test_admin_lists_all_courses(client, instructor, admin_headers, make_course):
    make_course(instructor["headers"], title="Live")
    make_course(instructor["headers"], title="Draft", publish=False)

    body = client.get(f"{API}/courses/admin/all", headers=admin_headers).json()
    assert body["total"] == 2

    drafts = client.get(
        f"{API}/courses/admin/all", params={"status": "draft"}, headers=admin_headers
    ).json()
    assert [c["title"] for c in drafts["courses"]] == ["Draft"]

    assert (
        client.get(f"{API}/courses/admin/all", headers=instructor["headers"]).status_code == 403
    )


def test_admin_bulk_action_skips_unknown_ids(client, instructor, admin_headers, make_course):
    first, _ = make_course(instructor["headers"], publish=False)
    second, _ = make_course(instructor["headers"], title="Second", publish=False)

    response = client.put(
        f"{API}/courses/admin/bulk-action",
        json={"course_ids": [first["id"], second["id"], 9999], "action": "publish"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json() == {
        "action": "publish",
        "processed": 2,
        "skipped": 1,
        "skipped_ids": [9999],
    }
    assert client.get(f"{API}/courses/").json()["total"] == 2


def test_admin_bulk_delete_respects_enrollments(
    client, instructor, student, admin_headers, make_course, enroll
):
    taken, _ = make_course(instructor["headers"])
    unused, _ = make_course(instructor["headers"], title="Unused")
    enroll(student["headers"], taken["id"])

    body = client.put(
        f"{API}/courses/admin/bulk-action",
        json={"course_ids": [taken["id"], unused["id"]], "action": "delete"},
        headers=admin_headers,
    ).json()
    assert body["processed"] == 1
    assert body["skipped_ids"] == [taken["id"]]


def test_admin_force_delete(client, instructor, student, admin_headers, make_course, enroll):
    course, _ = make_course(instructor["headers"])
    enroll(student["headers"], course["id"])

    blocked = client.delete(f"{API}/courses/admin/{course['id']}", headers=admin_headers)
    assert blocked.status_code == 400

    forced = client.delete(
        f"{API}/courses/admin/{course['id']}", params={"force": True}, headers=admin_headers
    )
    assert forced.status_code == 200
    assert forced.json() == {"success": True, "deleted_enrollments": 1}

    enrollments = client.get(f"{API}/enrollments/", headers=student["headers"])
    assert enrollments.json()["total"] == 0


def test_admin_instructors_statistics(client, instructor, student, admin_headers, make_course, enroll):
    course, _ = make_course(instructor["headers"], price=40)
    make_course(instructor["headers"], title="Draft", publish=False)
    enroll(student["headers"], course["id"])

    body = client.get(f"{API}/courses/admin/instructors", headers=admin_headers).json()
    assert len(body["instructors"]) == 1
    stats = body["instructors"][0]["statistics"]
    assert stats["total_courses"] == 2
    assert stats["published_courses"] == 1
    assert stats["draft_courses"] == 1
    assert stats["total_enrollments"] == 1
    assert stats["total_revenue"] == 40


def test_admin_dashboard_and_course_analytics(
    client, instructor, student, admin_headers, make_course, enroll
):
    course, _ = make_course(instructor["headers"], price=30)
    make_course(instructor["headers"], title="Draft", publish=False)
    enroll(student["headers"], course["id"])

    dashboard = client.get(f"{API}/courses/admin/dashboard", headers=admin_headers).json()
    assert dashboard["overview"]["total_courses"] == 2
    assert dashboard["overview"]["published_courses"] == 1
    assert dashboard["overview"]["draft_courses"] == 1
    assert dashboard["overview"]["total_revenue"] == 30
    assert [c["title"] for c in dashboard["courses_needing_review"]] == ["Draft"]

    analytics = client.get(
        f"{API}/courses/admin/{course['id']}/analytics", headers=admin_headers
    ).json()
    assert analytics["summary"]["total_enrollments"] == 1
    assert analytics["summary"]["active_enrollments"] == 1
    assert analytics["period_stats"]["7days"]["enrollments"] == 1
    assert analytics["recent_enrollments"][0]["student_name"] == "Alan Turing"


def test_course_analytics_for_owner(client, instructor, student, register, make_course, enroll):
    course, _ = make_course(instructor["headers"])
    enroll(student["headers"], course["id"])

    response = client.get(
        f"{API}/courses/{course['id']}/analytics", headers=instructor["headers"]
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total_enrollments"] == 1
    assert body["recent_enrollments"] == 1
    assert body["total_revenue"] == 50
    assert list(body["rating_distribution"]) == ["5", "4", "3", "2", "1"]

    other = register("instructor")
    denied = client.get(f"{API}/courses/{course['id']}/analytics", headers=other["headers"])
    assert denied.status_code == 403


def test_instructor_dashboards(client, instructor, student, admin_headers, make_course, enroll):
    empty = client.get(
        f"{API}/courses/instructor/dashboard-analytics", headers=instructor["headers"]
    ).json()
    assert empty["overview"]["total_courses"] == 0
    assert empty["timeframe"] == "90d"

    course, _ = make_course(instructor["headers"], price=20)
    enroll(student["headers"], course["id"])

    dashboard = client.get(
        f"{API}/courses/instructor/dashboard-analytics",
        params={"timeframe": "30d"},
        headers=instructor["headers"],
    ).json()
    assert dashboard["overview"]["total_students"] == 1
    assert dashboard["overview"]["total_revenue"] == 20
    assert dashboard["recent_activity"][0]["student_name"] == "Alan Turing"
    assert [bucket["range"] for bucket in dashboard["progress_distribution"]][-1] == "Complete"

    comparison = client.get(
        f"{API}/courses/instructor/performance-comparison", headers=instructor["headers"]
    ).json()
    assert comparison["summary"]["total_enrollments"] == 1

    students = client.get(
        f"{API}/courses/instructor/student-analytics",
        params={"course_id": course["id"]},
        headers=instructor["headers"],
    ).json()
    assert students["student_stats"]["total_students"] == 1
    assert len(students["daily_enrollments"]) == 30

    missing = client.get(
        f"{API}/courses/instructor/student-analytics",
        params={"course_id": 9999},
        headers=instructor["headers"],
    )
    assert missing.status_code == 404

    # Admins are not instructors for these dashboards
    assert (
        client.get(
            f"{API}/courses/instructor/dashboard-analytics", headers=admin_headers
        ).status_code
        == 403
    )
