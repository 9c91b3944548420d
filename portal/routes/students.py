import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from ..auth.dependencies import Scope, get_scope, get_staff_scope
from ..auth.security import generate_password, get_password_hash
from ..database import get_db, log_activity, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.people import StudentCreate, StudentOut, StudentRegistration, StudentUpdate
from ..services.identifiers import generate_student_id, generate_unique
from ..services.offline_marks import fallback_image_url

logger = logging.getLogger(__name__)

router = APIRouter()

MAIN_CENTER = "MAIN"
REQUIRED_FIELDS = [
    "name",
    "father_name",
    "mother_name",
    "date_of_birth",
    "gender",
    "address",
    "phone",
    "course",
]
# field -> (placeholder label, placeholder height)
DOCUMENT_FALLBACKS = {
    "photo_url": ("PHOTO", 400),
    "id_card_url": ("ID", 400),
    "signature_url": ("SIGN", 100),
}


def _student_doc_to_out(doc: dict) -> StudentOut:
    return StudentOut(
        id=str(doc["_id"]),
        student_id=doc["student_id"],
        name=doc.get("name"),
        father_name=doc.get("father_name"),
        mother_name=doc.get("mother_name"),
        email=doc.get("email"),
        phone=doc.get("phone"),
        address=doc.get("address"),
        date_of_birth=doc.get("date_of_birth"),
        gender=doc.get("gender"),
        course=str(doc["course"]) if doc.get("course") else None,
        course_name=doc.get("course_name"),
        center_id=doc.get("center_id"),
        photo_url=doc.get("photo_url"),
        id_card_url=doc.get("id_card_url"),
        signature_url=doc.get("signature_url"),
        course_fee=doc.get("course_fee") or 0,
        admission_fee=doc.get("admission_fee") or 0,
        exam_fee=doc.get("exam_fee") or 0,
        discount=doc.get("discount") or 0,
        total_fee=doc.get("total_fee") or 0,
        payable_amount=doc.get("payable_amount") or 0,
        status=doc.get("status", "Active"),
        created_at=doc.get("created_at"),
    )


def get_scoped_student(db: Database, id: str, scope: Scope) -> dict:
    doc = db["students"].find_one({"_id": to_object_id(id, "student ID")})
    if doc is None or not scope.allows_student(doc):
        raise HTTPException(status_code=404, detail="Student not found")
    return doc


def _course_for(db: Database, course_id: str) -> dict:
    course = db["courses"].find_one({"_id": to_object_id(course_id, "course ID")})
    if course is None:
        raise HTTPException(status_code=400, detail="Selected course does not exist")
    return course


@router.post("", response_model=Envelope[StudentRegistration], status_code=201)
def create_student(
    payload: StudentCreate,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    missing = [f for f in REQUIRED_FIELDS if not (getattr(payload, f) or "").strip()]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Please provide all required fields: {', '.join(missing)}",
        )
    course = _course_for(db, payload.course)

    if scope.is_admin:
        center_id = (payload.center_id or "").strip() or MAIN_CENTER
    else:
        center_id = scope.center_id

    student_id = generate_unique(db, "students", "student_id", generate_student_id)
    password = generate_password()
    now = utcnow()

    doc = payload.model_dump()
    for field in REQUIRED_FIELDS:
        doc[field] = doc[field].strip()
    for field, (label, height) in DOCUMENT_FALLBACKS.items():
        if not (doc.get(field) or "").strip():
            doc[field] = fallback_image_url(label, student_id, height)
    doc.update(
        {
            "student_id": student_id,
            "course": course["_id"],
            "course_name": course["name"],
            "center_id": center_id,
            "hashed_password": get_password_hash(password),
            "created_at": now,
            "updated_at": now,
        }
    )
    result = db["students"].insert_one(doc)
    doc["_id"] = result.inserted_id

    log_activity(
        db,
        f"New student {doc['name']} enrolled in {course['name']}",
        "student",
        doc["_id"],
        "Student",
        center_id=center_id,
        metadata={"student_id": student_id, "course": course["code"]},
    )
    logger.info("Registered student %s at center %s", student_id, center_id)
    registration = StudentRegistration(
        id=str(doc["_id"]),
        login_id=student_id,
        password=password,
        student=_student_doc_to_out(doc),
    )
    return ok(registration, "Student registered")


@router.get("", response_model=Envelope[list[StudentOut]])
def list_students(
    search: Optional[str] = Query(None),
    course: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    query = scope.student_filter()
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"student_id": pattern}, {"phone": pattern}]
    if course:
        query["course"] = to_object_id(course, "course ID")
    if status:
        query["status"] = status
    docs = db["students"].find(query).sort("created_at", -1)
    return ok([_student_doc_to_out(d) for d in docs])


@router.get("/{id}", response_model=Envelope[StudentOut])
def get_student(
    id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    return ok(_student_doc_to_out(get_scoped_student(db, id, scope)))


@router.put("/{id}", response_model=Envelope[StudentOut])
def update_student(
    id: str,
    payload: StudentUpdate,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    doc = get_scoped_student(db, id, scope)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("course"):
        course = _course_for(db, changes["course"])
        changes["course"] = course["_id"]
        changes["course_name"] = course["name"]
    if changes:
        changes["updated_at"] = utcnow()
        db["students"].update_one({"_id": doc["_id"]}, {"$set": changes})
        doc.update(changes)
    return ok(_student_doc_to_out(doc), "Student updated")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_student(
    id: str,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    doc = get_scoped_student(db, id, scope)
    db["students"].delete_one({"_id": doc["_id"]})
    logger.info("Deleted student %s", doc["student_id"])
    return ok({"id": id}, "Student deleted")
