from portal.auth.security import verify_password
from portal.seed_admin import create_admin


def test_create_admin_once(db):
    assert create_admin(db, "owner", "owner@example.com", "s3cret", "Owner")
    assert not create_admin(db, "other", "owner@example.com", "x")

    doc = db["users"].find_one({"username": "owner"})
    assert doc["role"] == "admin"
    assert verify_password("s3cret", doc["hashed_password"])


def test_created_admin_can_log_in(client, db):
    create_admin(db, "owner", "owner@example.com", "s3cret")
    response = client.post(
        "/api/auth/login", json={"type": "admin", "identifier": "owner@example.com", "password": "s3cret"}
    )
    assert response.status_code == 200
