import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from ..auth.dependencies import get_current_active_user, require_admin
from ..database import as_utc, get_db, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.exams import (
    ExamPaperCreate,
    ExamPaperOut,
    ExamPaperStatusUpdate,
    ExamPaperUpdate,
    PaperSubject,
)
from ..services.exam_papers import (
    ensure_activatable,
    prepare_subject_rows,
    questions_uploaded,
    refresh_subject_rows,
)
from ..services.identifiers import generate_paper_id, generate_unique

logger = logging.getLogger(__name__)

router = APIRouter()


def _paper_doc_to_out(doc: dict, db: Database) -> ExamPaperOut:
    return ExamPaperOut(
        id=str(doc["_id"]),
        paper_id=doc["paper_id"],
        paper_name=doc["paper_name"],
        paper_type=doc.get("paper_type", "online"),
        exam_type=doc.get("exam_type", "Main"),
        total_questions=doc.get("total_questions") or 0,
        correct_marks_per_question=doc.get("correct_marks_per_question") or 0,
        passing_marks=doc.get("passing_marks") or 0,
        time=doc.get("time") or 60,
        start_date=doc.get("start_date"),
        end_date=doc.get("end_date"),
        re_attempt=doc.get("re_attempt") or 0,
        re_attempt_time=doc.get("re_attempt_time") or 0,
        is_negative_mark=doc.get("is_negative_mark", False),
        negative_marks=doc.get("negative_marks") or 0,
        positive_marks=doc.get("positive_marks") or 0,
        course_type=doc.get("course_type"),
        course=doc.get("course"),
        status=doc.get("status", "inactive"),
        subjects=[PaperSubject(**row) for row in doc.get("subjects") or []],
        questions_uploaded=questions_uploaded(db, doc),
        created_at=doc.get("created_at"),
    )


def _get_paper(db: Database, id: str) -> dict:
    doc = db["exam_papers"].find_one({"_id": to_object_id(id, "exam paper ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Exam paper not found")
    return doc


def _normalize_type(value: Optional[str]) -> str:
    return "offline" if (value or "").lower() == "offline" else "online"


@router.post("", response_model=Envelope[ExamPaperOut], status_code=201)
def create_exam_paper(
    payload: ExamPaperCreate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if not payload.paper_name.strip():
        raise HTTPException(status_code=400, detail="Paper name is required")
    if payload.start_date and payload.end_date and as_utc(payload.end_date) < as_utc(payload.start_date):
        raise HTTPException(status_code=400, detail="End date must be after start date")
    rows = prepare_subject_rows(
        [row.model_dump() for row in payload.subjects], payload.correct_marks_per_question
    )
    now = utcnow()
    doc = payload.model_dump()
    doc.update(
        {
            "paper_name": payload.paper_name.strip(),
            "paper_type": _normalize_type(payload.paper_type),
            "subjects": rows,
            "paper_id": generate_unique(db, "exam_papers", "paper_id", generate_paper_id),
            "status": "inactive",
            "created_at": now,
            "updated_at": now,
        }
    )
    result = db["exam_papers"].insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Created exam paper %s with %d subjects", doc["paper_id"], len(rows))
    return ok(_paper_doc_to_out(doc, db), "Exam paper created")


@router.get("", response_model=Envelope[list[ExamPaperOut]])
def list_exam_papers(
    course: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    paper_type: Optional[str] = Query(None, alias="paperType"),
    exam_type: Optional[str] = Query(None, alias="examType"),
    for_apply_page: bool = Query(False, alias="forApplyPage"),
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    query: dict = {}
    if course:
        query["course"] = course
    if status:
        query["status"] = status
    if paper_type:
        query["paper_type"] = {"$regex": f"^{re.escape(paper_type)}$", "$options": "i"}
    if exam_type:
        query["exam_type"] = exam_type
    if for_apply_page:
        query["status"] = "active"
        query["exam_type"] = "Main"
    docs = db["exam_papers"].find(query).sort("created_at", -1)
    return ok([_paper_doc_to_out(d, db) for d in docs])


@router.get("/{id}", response_model=Envelope[ExamPaperOut])
def get_exam_paper(
    id: str,
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    return ok(_paper_doc_to_out(_get_paper(db, id), db))


@router.put("/{id}", response_model=Envelope[ExamPaperOut])
def update_exam_paper(
    id: str,
    payload: ExamPaperUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_paper(db, id)
    changes = payload.model_dump(exclude_unset=True)
    if "paper_type" in changes:
        changes["paper_type"] = _normalize_type(changes["paper_type"])
    marks = changes.get("correct_marks_per_question", doc.get("correct_marks_per_question"))
    marks_changed = marks != doc.get("correct_marks_per_question")
    if "subjects" in changes or marks_changed:
        incoming = (changes["subjects"] or []) if "subjects" in changes else None
        changes["subjects"] = refresh_subject_rows(doc.get("subjects") or [], incoming, marks, marks_changed)
    if changes:
        changes["updated_at"] = utcnow()
        db["exam_papers"].update_one({"_id": doc["_id"]}, {"$set": changes})
        doc.update(changes)
    if doc.get("status") == "active" and not questions_uploaded(db, doc):
        db["exam_papers"].update_one({"_id": doc["_id"]}, {"$set": {"status": "inactive"}})
        doc["status"] = "inactive"
        logger.info("Paper %s deactivated after edit left a subject without questions", doc["paper_id"])
    return ok(_paper_doc_to_out(doc, db), "Exam paper updated")


@router.put("/{id}/status", response_model=Envelope[ExamPaperOut])
def set_exam_paper_status(
    id: str,
    payload: ExamPaperStatusUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_paper(db, id)
    if payload.status == "active":
        ensure_activatable(db, doc)
    db["exam_papers"].update_one(
        {"_id": doc["_id"]}, {"$set": {"status": payload.status, "updated_at": utcnow()}}
    )
    doc["status"] = payload.status
    logger.info("Exam paper %s is now %s", doc["paper_id"], payload.status)
    return ok(
        _paper_doc_to_out(doc, db),
        f'Exam paper status updated to "{payload.status}" successfully',
    )


@router.delete("/{id}", response_model=Envelope[dict])
def delete_exam_paper(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_paper(db, id)
    db["exam_papers"].delete_one({"_id": doc["_id"]})
    db["questions"].delete_many({"paper_id": doc["paper_id"]})
    return ok({"id": id}, "Exam paper deleted")
