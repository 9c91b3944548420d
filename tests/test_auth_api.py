from .conftest import make_course, make_student, make_subcenter


def test_admin_login_with_username_or_email(client, admin):
    for identifier in ("admin", "admin@example.com"):
        response = client.post(
            "/api/auth/login",
            json={"type": "admin", "identifier": identifier, "password": "admin123"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["role"] == "admin"
        assert body["data"]["token_type"] == "bearer"


def test_wrong_password_is_rejected_in_envelope(client, admin):
    response = client.post(
        "/api/auth/login",
        json={"type": "admin", "identifier": "admin", "password": "nope"},
    )
    assert response.status_code == 401
    assert response.json() == {"success": False, "data": None, "message": "Invalid credentials"}


def test_student_login_and_me(client, db):
    course = make_course(db)
    make_student(db, course)
    response = client.post(
        "/api/auth/login",
        json={"type": "student", "identifier": "STU250001", "password": "student123"},
    )
    token = response.json()["data"]["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    principal = me.json()["data"]
    assert principal["role"] == "student"
    assert principal["login_id"] == "STU250001"
    assert principal["center_id"] == "KR0000001"


def test_inactive_subcenter_cannot_log_in(client, db):
    make_subcenter(db, "KR0000009", password="pw", is_active=False)
    response = client.post(
        "/api/auth/login",
        json={"type": "atc", "identifier": "KR0000009", "password": "pw"},
    )
    assert response.status_code == 403


def test_missing_token_is_401(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_invalid_login_type_is_422_envelope(client):
    response = client.post(
        "/api/auth/login", json={"type": "guest", "identifier": "x", "password": "y"}
    )
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "type" in body["message"]


def test_register_admin_requires_admin(client, atc_headers, admin_headers):
    payload = {"username": "second", "email": "second@example.com", "password": "pw123456"}
    assert client.post("/api/auth/register", json=payload, headers=atc_headers).status_code == 403
    response = client.post("/api/auth/register", json=payload, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["username"] == "second"
    assert "hashed_password" not in response.json()["data"]


def test_get_requests_are_not_cached(client):
    response = client.get("/api/health")
    assert response.headers["cache-control"] == "no-store, max-age=0, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"


def test_admin_profile_password_change(client, admin, admin_headers):
    profile = client.get("/api/auth/profile", headers=admin_headers).json()["data"]
    assert profile["email"] == "admin@example.com"

    refused = client.put(
        "/api/auth/profile",
        json={"current_password": "wrong", "new_password": "fresh-pass"},
        headers=admin_headers,
    )
    assert refused.status_code == 401
    assert refused.json()["message"] == "Current password is incorrect"

    updated = client.put(
        "/api/auth/profile",
        json={"current_password": "admin123", "new_password": "fresh-pass", "email": "owner@example.com"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["email"] == "owner@example.com"

    login = client.post(
        "/api/auth/login",
        json={"type": "admin", "identifier": "owner@example.com", "password": "fresh-pass"},
    )
    assert login.status_code == 200


def test_profile_is_admin_only(client, atc_headers):
    assert client.get("/api/auth/profile", headers=atc_headers).status_code == 403
