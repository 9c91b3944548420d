import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from ..auth.dependencies import get_current_active_user, require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.exams import QuestionBatch, QuestionCreate, QuestionOut
from ..services.exam_papers import fill_question_placeholders, find_paper

logger = logging.getLogger(__name__)

router = APIRouter()


def question_doc_to_out(doc: dict, reveal_answer: bool = True) -> QuestionOut:
    return QuestionOut(
        id=str(doc["_id"]),
        paper_id=doc["paper_id"],
        subject_id=doc["subject_id"],
        subject_name=doc.get("subject_name"),
        question_text=doc.get("question_text") or "",
        option_a=doc.get("option_a") or "",
        option_b=doc.get("option_b") or "",
        option_c=doc.get("option_c") or "",
        option_d=doc.get("option_d") or "",
        correct_option=doc.get("correct_option") if reveal_answer else None,
    )


def _paper_for(db: Database, key: str) -> dict:
    paper = find_paper(db, key)
    if paper is None:
        raise HTTPException(status_code=404, detail="Exam paper not found")
    return paper


def _question_doc(db: Database, payload: QuestionCreate) -> dict:
    paper = _paper_for(db, payload.paper_id)
    row = next(
        (r for r in paper.get("subjects") or [] if r.get("subject_id") == payload.subject_id),
        None,
    )
    if row is None:
        raise HTTPException(
            status_code=400,
            detail=f"Subject {payload.subject_id} is not part of paper {paper['paper_id']}",
        )
    doc = payload.model_dump()
    doc.update(
        {
            "paper_id": paper["paper_id"],
            "subject_name": payload.subject_name or row.get("subject_name"),
            "created_at": utcnow(),
        }
    )
    return doc


@router.get("", response_model=Envelope[list[QuestionOut]])
def list_questions(
    paper_id: str = Query(..., alias="paperId"),
    subject_id: Optional[str] = Query(None, alias="subjectId"),
    current_user: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    paper = _paper_for(db, paper_id)
    query: dict = {"paper_id": paper["paper_id"]}
    if subject_id:
        query["subject_id"] = subject_id
    docs = db["questions"].find(query).sort("_id", 1)
    reveal = current_user["role"] != "student"
    return ok(
        [
            question_doc_to_out(fill_question_placeholders(d, i), reveal)
            for i, d in enumerate(docs)
        ]
    )


@router.post("", response_model=Envelope[QuestionOut], status_code=201)
def create_question(
    payload: QuestionCreate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _question_doc(db, payload)
    result = db["questions"].insert_one(doc)
    doc["_id"] = result.inserted_id
    return ok(question_doc_to_out(doc), "Question added")


@router.post("/batch", response_model=Envelope[list[QuestionOut]], status_code=201)
def create_questions_batch(
    payload: QuestionBatch,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if not payload.questions:
        raise HTTPException(status_code=400, detail="No questions provided")
    docs = [_question_doc(db, q) for q in payload.questions]
    result = db["questions"].insert_many(docs)
    for doc, inserted_id in zip(docs, result.inserted_ids):
        doc["_id"] = inserted_id
    logger.info("Uploaded %d questions for paper %s", len(docs), docs[0]["paper_id"])
    return ok([question_doc_to_out(d) for d in docs], f"{len(docs)} questions added")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_question(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    result = db["questions"].delete_one({"_id": to_object_id(id, "question ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Question not found")
    return ok({"id": id}, "Question deleted")
