import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from ..auth.dependencies import get_current_active_user, require_admin
from ..database import get_db, log_activity, to_object_id, utcnow
from ..schemas.catalog import (
    CourseCreate,
    CourseDetailOut,
    CourseOut,
    CourseSubjectsUpdate,
    CourseUpdate,
)
from ..schemas.core import Envelope, ok
from ..services.courses import course_image_url, validate_subject_count
from .subjects import _subject_doc_to_out

logger = logging.getLogger(__name__)

router = APIRouter()


def _course_doc_to_out(doc: dict) -> CourseOut:
    return CourseOut(
        id=str(doc["_id"]),
        name=doc["name"],
        code=doc["code"],
        description=doc.get("description"),
        duration=doc.get("duration"),
        fee=doc.get("fee") or 0,
        image_url=course_image_url(doc),
        is_active=doc.get("is_active", True),
        subjects=[str(s) for s in doc.get("subjects") or []],
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


def _get_course(db: Database, id: str) -> dict:
    doc = db["courses"].find_one({"_id": to_object_id(id, "course ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return doc


def _check_code_free(db: Database, code: str, exclude=None) -> None:
    query: dict = {"code": code}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    if db["courses"].find_one(query, {"_id": 1}):
        raise HTTPException(status_code=400, detail=f"Course with code {code} already exists")


def _resolve_subjects(db: Database, subject_ids: list[str]) -> list:
    oids = [to_object_id(s, "subject ID") for s in subject_ids]
    found = {d["_id"] for d in db["subjects"].find({"_id": {"$in": oids}}, {"_id": 1})}
    missing = [str(o) for o in oids if o not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Subjects not found: {', '.join(missing)}")
    return oids


def _assign_subjects(db: Database, course: dict, subject_ids: list[str]) -> dict:
    validate_subject_count(course, subject_ids)
    oids = _resolve_subjects(db, subject_ids)
    previous = set(course.get("subjects") or [])
    db["courses"].update_one(
        {"_id": course["_id"]}, {"$set": {"subjects": oids, "updated_at": utcnow()}}
    )
    removed = [o for o in previous if o not in oids]
    if removed:
        db["subjects"].update_many(
            {"_id": {"$in": removed}}, {"$pull": {"courses": course["_id"]}}
        )
    db["subjects"].update_many(
        {"_id": {"$in": oids}}, {"$addToSet": {"courses": course["_id"]}}
    )
    course["subjects"] = oids
    return course


@router.post("", response_model=Envelope[CourseOut], status_code=201)
def create_course(
    payload: CourseCreate,
    current_user: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    _check_code_free(db, payload.code)
    now = utcnow()
    doc = payload.model_dump(exclude={"subjects"})
    doc.update({"subjects": [], "created_at": now, "updated_at": now})
    result = db["courses"].insert_one(doc)
    doc["_id"] = result.inserted_id
    if payload.subjects:
        try:
            _assign_subjects(db, doc, payload.subjects)
        except HTTPException:
            db["courses"].delete_one({"_id": doc["_id"]})
            raise
    log_activity(
        db,
        f"New course {payload.name} ({payload.code}) created",
        "course",
        doc["_id"],
        "Course",
    )
    logger.info("Created course %s", payload.code)
    return ok(_course_doc_to_out(doc), "Course created")


@router.get("", response_model=Envelope[list[CourseOut]])
def list_courses(
    active: Optional[bool] = Query(None),
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    query: dict = {}
    if active is not None:
        query["is_active"] = active
    docs = db["courses"].find(query).sort("created_at", -1)
    return ok([_course_doc_to_out(d) for d in docs])


@router.get("/{id}", response_model=Envelope[CourseDetailOut])
def get_course(
    id: str,
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    doc = _get_course(db, id)
    subjects = {s["_id"]: s for s in db["subjects"].find({"_id": {"$in": doc.get("subjects") or []}})}
    ordered = [subjects[s] for s in doc.get("subjects") or [] if s in subjects]
    out = CourseDetailOut(
        **_course_doc_to_out(doc).model_dump(),
        subject_details=[_subject_doc_to_out(s) for s in ordered],
    )
    return ok(out)


@router.put("/{id}", response_model=Envelope[CourseOut])
def update_course(
    id: str,
    payload: CourseUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_course(db, id)
    changes = payload.model_dump(exclude_unset=True)
    if "code" in changes and changes["code"] != doc["code"]:
        _check_code_free(db, changes["code"], exclude=doc["_id"])
    subjects = [str(s) for s in doc.get("subjects") or []]
    if subjects and ("name" in changes or "code" in changes):
        validate_subject_count({**doc, **changes}, subjects)
    if changes:
        changes["updated_at"] = utcnow()
        db["courses"].update_one({"_id": doc["_id"]}, {"$set": changes})
        doc.update(changes)
    return ok(_course_doc_to_out(doc), "Course updated")


@router.put("/{id}/subjects", response_model=Envelope[CourseOut])
def assign_course_subjects(
    id: str,
    payload: CourseSubjectsUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _assign_subjects(db, _get_course(db, id), payload.subjects)
    logger.info("Course %s now has %d subjects", doc["code"], len(payload.subjects))
    return ok(_course_doc_to_out(doc), "Course subjects updated")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_course(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_course(db, id)
    db["courses"].delete_one({"_id": doc["_id"]})
    db["subjects"].update_many({"courses": doc["_id"]}, {"$pull": {"courses": doc["_id"]}})
    return ok({"id": id}, "Course deleted")
