import os
import tempfile

# Must be set before portal.config is imported.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="portal-uploads-"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

from portal.auth.security import create_access_token, get_password_hash
from portal.database import get_db, utcnow
from portal.main import app

CENTER_ID = "KR0000001"
OTHER_CENTER_ID = "KR0000002"


@pytest.fixture()
def db():
    return mongomock.MongoClient(tz_aware=True)["portal_test"]


@pytest.fixture()
def client(db):
    """
    TestClient against the real app with MongoDB swapped for mongomock.
    Not used as a context manager, so the startup hook never touches a real server.
    """
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(doc: dict, role: str) -> dict:
    claims = {"sub": str(doc["_id"]), "role": role}
    if doc.get("center_id"):
        claims["center_id"] = doc["center_id"]
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest.fixture()
def admin(db):
    doc = {
        "username": "admin",
        "email": "admin@example.com",
        "full_name": "Admin",
        "role": "admin",
        "hashed_password": get_password_hash("admin123"),
        "is_active": True,
    }
    doc["_id"] = db["users"].insert_one(doc).inserted_id
    return doc


@pytest.fixture()
def admin_headers(admin):
    return bearer(admin, "admin")


def make_subcenter(db, center_id=CENTER_ID, password="center123", is_active=True):
    doc = {
        "center_id": center_id,
        "name": f"Center {center_id}",
        "email": f"{center_id.lower()}@example.com",
        "hashed_password": get_password_hash(password),
        "is_active": is_active,
        "created_at": utcnow(),
    }
    doc["_id"] = db["subcenters"].insert_one(doc).inserted_id
    return doc


@pytest.fixture()
def subcenter(db):
    return make_subcenter(db)


@pytest.fixture()
def atc_headers(subcenter):
    return bearer(subcenter, "atc")


def make_subject(db, code, name=None, total_marks=100, total_practical_marks=50):
    doc = {
        "name": name or f"Subject {code}",
        "code": code,
        "total_marks": total_marks,
        "total_practical_marks": total_practical_marks,
        "courses": [],
        "is_active": True,
    }
    doc["_id"] = db["subjects"].insert_one(doc).inserted_id
    return doc


def make_course(db, code="DCA", name="Diploma in Computer Applications", subjects=()):
    doc = {
        "name": name,
        "code": code,
        "duration": "6 Months",
        "fee": 5000,
        "subjects": [s["_id"] for s in subjects],
        "is_active": True,
        "created_at": utcnow(),
    }
    doc["_id"] = db["courses"].insert_one(doc).inserted_id
    return doc


def make_student(db, course, center_id=CENTER_ID, student_id="STU250001", name="Ravi Kumar", password="student123"):
    doc = {
        "student_id": student_id,
        "name": name,
        "father_name": "Mohan Kumar",
        "course": course["_id"],
        "course_name": course["name"],
        "center_id": center_id,
        "photo_url": "ravi.jpg",
        "status": "Active",
        "hashed_password": get_password_hash(password),
        "created_at": utcnow(),
    }
    doc["_id"] = db["students"].insert_one(doc).inserted_id
    return doc


def make_paper(db, subjects, paper_type="online", time=30, marks=2, status="inactive", **extra):
    doc = {
        "paper_id": extra.pop("paper_id", "P1234"),
        "paper_name": "Main Exam",
        "paper_type": paper_type,
        "exam_type": "Main",
        "correct_marks_per_question": marks,
        "time": time,
        "status": status,
        "subjects": [
            {"subject_id": str(s["_id"]), "subject_name": s["name"], "number_of_questions": 1}
            for s in subjects
        ],
        "created_at": utcnow(),
    }
    doc.update(extra)
    doc["_id"] = db["exam_papers"].insert_one(doc).inserted_id
    return doc


def make_question(db, paper, subject, correct="A", text="What is RAM?"):
    doc = {
        "paper_id": paper["paper_id"],
        "subject_id": str(subject["_id"]),
        "subject_name": subject["name"],
        "question_text": text,
        "option_a": "Memory",
        "option_b": "Disk",
        "option_c": "CPU",
        "option_d": "Monitor",
        "correct_option": correct,
    }
    doc["_id"] = db["questions"].insert_one(doc).inserted_id
    return doc


def make_application(db, paper, student, status="scheduled", **extra):
    doc = {
        "exam_paper_id": paper["_id"],
        "student_id": student["_id"],
        "student_name": student["name"],
        "student_id_number": student["student_id"],
        "center_id": student["center_id"],
        "paper_type": paper["paper_type"],
        "status": status,
        "subject_marks": {},
        "answers": {},
        "created_at": utcnow(),
    }
    doc.update(extra)
    doc["_id"] = db["exam_applications"].insert_one(doc).inserted_id
    return doc
