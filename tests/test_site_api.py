import io

from PIL import Image

from .conftest import make_course, make_student

ENQUIRY = {
    "name": "Priya",
    "father_name": "Ramesh",
    "mother_name": "Geeta",
    "email": "priya@example.com",
    "phone": "9001203861",
    "address": "Station Road",
    "gender": "Female",
    "date_of_birth": "2006-02-14",
    "education": "12th",
    "preferred_time": "Morning",
}


def _image(fmt):
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), "red").save(buffer, format=fmt)
    return buffer.getvalue()


def test_cms_batch_is_all_or_nothing(client, admin_headers, db):
    response = client.post(
        "/api/cms/batch",
        json={"items": [{"section": "home", "key": "hero", "value": "Hi"}, {"section": "home", "value": "x"}]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Item 2 is missing section or key"
    assert db["cms_contents"].count_documents({}) == 0


def test_cms_upsert_and_public_read(client, admin_headers):
    client.post("/api/cms", json={"section": "home", "key": "hero", "value": "Welcome"}, headers=admin_headers)
    client.post("/api/cms", json={"section": "home", "key": "hero", "value": "Welcome back"}, headers=admin_headers)
    items = client.get("/api/cms", params={"section": "home"}).json()["data"]
    assert [(i["key"], i["value"]) for i in items] == [("hero", "Welcome back")]


def test_global_settings_defaults_and_partial_update(client, admin_headers, db):
    defaults = client.get("/api/cms/global-settings").json()["data"]
    assert defaults["websiteName"] == "Krishna Computers"

    db["cms_contents"].insert_one({"section": "global", "key": "logo", "value": "/uploads/branding/l.png"})
    db["cms_contents"].insert_one({"section": "global", "key": "legacyKey", "value": "ignored"})
    saved = client.put(
        "/api/cms/global-settings", json={"websiteName": "KC Institute"}, headers=admin_headers
    ).json()["data"]
    assert saved["websiteName"] == "KC Institute"
    assert saved["logo"] == "/uploads/branding/l.png"
    assert "legacyKey" not in saved


def test_logo_and_favicon_uploads(client, admin_headers):
    logo = client.post(
        "/api/cms/logo", files={"file": ("logo.gif", _image("GIF"), "image/gif")}, headers=admin_headers
    )
    assert logo.status_code == 200
    assert logo.json()["data"]["value"].endswith(".gif")

    favicon = client.post(
        "/api/cms/favicon", files={"file": ("f.jpg", _image("JPEG"), "image/jpeg")}, headers=admin_headers
    )
    assert favicon.status_code == 400

    settings = client.get("/api/cms/global-settings").json()["data"]
    assert settings["logo"] == logo.json()["data"]["value"]
    assert settings["favicon"] == ""


def test_public_home(client, db):
    make_course(db)
    make_course(db, code="OLD", name="Retired")
    db["courses"].update_one({"code": "OLD"}, {"$set": {"is_active": False}})
    home = client.get("/api/public/home").json()["data"]
    assert [c["code"] for c in home["courses"]] == ["DCA"]
    assert home["settings"]["websiteName"] == "Krishna Computers"


def test_student_enquiry_flow(client, admin_headers, db):
    course = make_course(db)
    response = client.post("/api/enquiries/student", json={**ENQUIRY, "course": str(course["_id"])})
    assert response.status_code == 201
    enquiry = response.json()["data"]
    assert enquiry["application_id"].startswith("APP")
    assert enquiry["status"] == "New"
    assert enquiry["course_name"] == course["name"]

    updated = client.patch(
        f"/api/enquiries/student/{enquiry['id']}", json={"status": "Contacted"}, headers=admin_headers
    )
    assert updated.json()["data"]["status"] == "Contacted"


def test_student_enquiry_validation(client, db):
    bad_course = client.post("/api/enquiries/student", json={**ENQUIRY, "course": "64b7f0c2a1b2c3d4e5f60718"})
    assert bad_course.status_code == 400

    course = make_course(db)
    long_phone = client.post(
        "/api/enquiries/student", json={**ENQUIRY, "phone": "9" * 16, "course": str(course["_id"])}
    )
    assert long_phone.status_code == 422


def test_contact_enquiries_are_paginated(client, admin_headers):
    for i in range(12):
        client.post(
            "/api/enquiries/contact",
            json={"name": f"Visitor {i}", "email": f"v{i}@example.com", "message": "Timings?"},
        )
    page = client.get(
        "/api/enquiries/contact", params={"page": 2, "limit": 5}, headers=admin_headers
    ).json()["data"]
    assert page["pagination"] == {"total": 12, "page": 2, "limit": 5, "total_pages": 3}
    assert len(page["items"]) == 5

    found = client.get(
        "/api/enquiries/contact", params={"search": "visitor 11"}, headers=admin_headers
    ).json()["data"]
    assert [e["name"] for e in found["items"]] == ["Visitor 11"]


def test_enquiry_lists_are_admin_only(client, atc_headers):
    assert client.get("/api/enquiries/student", headers=atc_headers).status_code == 403


def test_credentials_are_masked_and_resettable(client, admin_headers, subcenter, db):
    student = make_student(db, make_course(db))
    listed = client.get("/api/users/credentials", headers=admin_headers).json()["data"]
    assert listed["from_cache"] is False
    assert {c["user_id"] for c in listed["items"]} == {"STU250001", "KR0000001"}
    assert all(c["password"] == "********" for c in listed["items"])

    searched = client.get(
        "/api/users/credentials", params={"search": "kr0000001"}, headers=admin_headers
    ).json()["data"]
    assert [c["type"] for c in searched["items"]] == ["subcenter"]

    reset = client.post(
        f"/api/users/credentials/student/{student['_id']}/reset", headers=admin_headers
    ).json()["data"]
    assert reset["user_id"] == "STU250001"
    old = client.post(
        "/api/auth/login", json={"type": "student", "identifier": "STU250001", "password": "student123"}
    )
    assert old.status_code == 401
    new = client.post(
        "/api/auth/login", json={"type": "student", "identifier": "STU250001", "password": reset["password"]}
    )
    assert new.status_code == 200


def test_dashboard_is_scoped(client, admin_headers, atc_headers, db):
    course = make_course(db)
    make_student(db, course)
    make_student(db, course, center_id="KR0000002", student_id="STU250002")
    db["activities"].insert_many(
        [
            {"activity": "mine", "type": "student", "center_id": "KR0000001"},
            {"activity": "theirs", "type": "student", "center_id": "KR0000002"},
        ]
    )
    admin = client.get("/api/dashboard", headers=admin_headers).json()["data"]
    assert admin["counts"]["students"] == 2
    assert admin["counts"]["subcenters"] == 1

    atc = client.get("/api/dashboard", headers=atc_headers).json()["data"]
    assert atc["counts"]["students"] == 1
    assert "subcenters" not in atc["counts"]
    assert [a["activity"] for a in atc["recent_activities"]] == ["mine"]


def test_json_routes_declare_envelope_models():
    from fastapi.routing import APIRoute

    from portal.main import app

    binary = {"/api/certificates/{application_id}/download", "/api/exam-applications/results.xlsx", "/api/template-config/preview"}
    missing = [
        route.path
        for route in app.routes
        if isinstance(route, APIRoute) and route.path.startswith("/api/") and route.path not in binary
        and route.response_model is None
    ]
    assert missing == []


def test_dashboard_activity_shape(client, admin_headers, db):
    db["activities"].insert_one({"activity": "Course added", "type": "course"})
    admin = client.get("/api/dashboard", headers=admin_headers).json()["data"]
    assert admin["role"] == "admin"
    (activity,) = admin["recent_activities"]
    assert activity["entity_id"] is None
    assert activity["type"] == "course"
