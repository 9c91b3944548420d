from .conftest import make_course, make_subject


def _course(client, headers, **overrides):
    payload = {"name": "Diploma in Computer Applications", "code": "DCA", "duration": "6 Months"}
    payload.update(overrides)
    return client.post("/api/courses", json=payload, headers=headers)


def test_create_course_gets_placeholder_image(client, admin_headers, db):
    response = _course(client, admin_headers)
    assert response.status_code == 201
    course = response.json()["data"]
    assert course["image_url"] == "/placeholder.svg?text=DCA&width=600&height=400&bg=yellow"
    assert db["activities"].count_documents({"type": "course"}) == 1


def test_duplicate_course_code(client, admin_headers):
    _course(client, admin_headers)
    response = _course(client, admin_headers, name="Other")
    assert response.status_code == 400
    assert response.json()["message"] == "Course with code DCA already exists"


def test_assign_subjects_keeps_back_references(client, admin_headers, db):
    subjects = [make_subject(db, f"S{i}") for i in range(3)]
    course = make_course(db)
    ids = [str(s["_id"]) for s in subjects]

    response = client.put(
        f"/api/courses/{course['_id']}/subjects", json={"subjects": ids}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["subjects"] == ids
    assert db["subjects"].find_one({"_id": subjects[0]["_id"]})["courses"] == [course["_id"]]

    client.put(
        f"/api/courses/{course['_id']}/subjects", json={"subjects": ids[1:]}, headers=admin_headers
    )
    assert db["subjects"].find_one({"_id": subjects[0]["_id"]})["courses"] == []


def test_typing_course_rejects_fourth_subject_before_writing(client, admin_headers, db):
    subjects = [make_subject(db, f"T{i}") for i in range(4)]
    course = make_course(db, code="TYPING", name="Hindi Typing")
    response = client.put(
        f"/api/courses/{course['_id']}/subjects",
        json={"subjects": [str(s["_id"]) for s in subjects]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert db["courses"].find_one({"_id": course["_id"]})["subjects"] == []
    assert db["subjects"].count_documents({"courses": course["_id"]}) == 0


def test_renaming_into_typing_course_respects_subject_cap(client, admin_headers, db):
    subjects = [make_subject(db, f"O{i}") for i in range(5)]
    course = make_course(db, code="OFFICE", name="Office", subjects=subjects)
    url = f"/api/courses/{course['_id']}"

    refused = client.put(url, json={"name": "Hindi Typing"}, headers=admin_headers)
    assert refused.status_code == 400
    assert db["courses"].find_one({"_id": course["_id"]})["name"] == "Office"

    assert client.put(url, json={"code": "TYPING1"}, headers=admin_headers).status_code == 400
    assert client.put(url, json={"name": "Office Suite"}, headers=admin_headers).status_code == 200


def test_regular_course_accepts_eight_but_not_nine(client, admin_headers, db):
    subjects = [make_subject(db, f"R{i}") for i in range(9)]
    course = make_course(db)
    url = f"/api/courses/{course['_id']}/subjects"
    ids = [str(s["_id"]) for s in subjects]
    assert client.put(url, json={"subjects": ids[:8]}, headers=admin_headers).status_code == 200
    assert client.put(url, json={"subjects": ids}, headers=admin_headers).status_code == 400


def test_course_detail_lists_subjects_in_order(client, admin_headers, db):
    first, second = make_subject(db, "A1", "Office"), make_subject(db, "A2", "Internet")
    course = make_course(db, subjects=[second, first])
    response = client.get(f"/api/courses/{course['_id']}", headers=admin_headers)
    names = [s["name"] for s in response.json()["data"]["subject_details"]]
    assert names == ["Internet", "Office"]


def test_subject_defaults_and_invalid_id(client, admin_headers):
    response = client.post(
        "/api/subjects", json={"name": "Office", "code": "OFF"}, headers=admin_headers
    )
    subject = response.json()["data"]
    assert subject["total_marks"] == 100
    assert subject["total_practical_marks"] == 50

    bad = client.get("/api/subjects/not-an-id", headers=admin_headers)
    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid subject ID format"


def test_atc_cannot_create_courses(client, atc_headers):
    assert _course(client, atc_headers).status_code == 403
