import logging
from typing import Iterable, List, Mapping, Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo.database import Database

logger = logging.getLogger(__name__)


def is_complete_row(row: Mapping) -> bool:
    return bool(row.get("subject_id")) and bool(row.get("subject_name"))


def recompute_theoretical_marks(rows: List[dict], marks_per_question: Optional[float]) -> List[dict]:
    """Set ``theoretical_marks`` to questions x marks wherever both are known.

    Rows lacking either input keep whatever was typed in by hand.
    """
    for row in rows:
        questions = row.get("number_of_questions")
        if questions and marks_per_question:
            row["theoretical_marks"] = questions * marks_per_question
    return rows


def prepare_subject_rows(rows: Iterable[dict], marks_per_question: Optional[float]) -> List[dict]:
    """Keep complete rows and fill theoretical marks the user left blank."""
    kept = []
    for row in rows:
        if not is_complete_row(row):
            continue
        row = dict(row)
        if row.get("theoretical_marks") is None:
            recompute_theoretical_marks([row], marks_per_question)
        kept.append(row)
    return kept


def refresh_subject_rows(
    stored: Iterable[Mapping],
    incoming: Optional[Iterable[dict]],
    marks_per_question: Optional[float],
    marks_changed: bool,
) -> List[dict]:
    """Rows for a paper edit, with theoretical marks kept in step with their inputs.

    ``incoming`` of None means the rows were not resubmitted. A stored product is
    recomputed when the marks per question or the row's question count moved,
    unless the caller also sent a different ``theoretical_marks`` for that row.
    """
    previous = {row.get("subject_id"): row for row in stored}
    if incoming is None:
        rows = [dict(row) for row in previous.values()]
        return recompute_theoretical_marks(rows, marks_per_question) if marks_changed else rows
    kept = []
    for row in incoming:
        if not is_complete_row(row):
            continue
        row = dict(row)
        before = previous.get(row["subject_id"])
        if row.get("theoretical_marks") is None:
            recompute_theoretical_marks([row], marks_per_question)
        elif before is not None and row["theoretical_marks"] == before.get("theoretical_marks"):
            if marks_changed or row.get("number_of_questions") != before.get("number_of_questions"):
                recompute_theoretical_marks([row], marks_per_question)
        kept.append(row)
    return kept


def subjects_missing_questions(db: Database, paper: Mapping) -> List[str]:
    """Names of the paper's subjects with no uploaded questions, in row order."""
    paper_key = paper["paper_id"]
    missing = []
    for row in paper.get("subjects") or []:
        count = db["questions"].count_documents(
            {"paper_id": paper_key, "subject_id": row.get("subject_id")}
        )
        if count == 0:
            missing.append(row.get("subject_name") or row.get("subject_id") or "")
    return missing


def find_paper(db: Database, key: str) -> Optional[dict]:
    """Look a paper up by its ``P####`` code or its ObjectId string."""
    query: dict = {"paper_id": key}
    if ObjectId.is_valid(key):
        query = {"$or": [{"paper_id": key}, {"_id": ObjectId(key)}]}
    return db["exam_papers"].find_one(query)


def questions_uploaded(db: Database, paper: Mapping) -> bool:
    return bool(paper.get("subjects")) and not subjects_missing_questions(db, paper)


def ensure_activatable(db: Database, paper: Mapping) -> None:
    if not paper.get("subjects"):
        raise HTTPException(
            status_code=400,
            detail="Exam paper has no subjects. Add subjects and questions before activating.",
        )
    missing = subjects_missing_questions(db, paper)
    if missing:
        logger.info("Paper %s activation blocked; %s has no questions", paper.get("paper_id"), missing[0])
        raise HTTPException(
            status_code=400,
            detail=(
                f'Subject "{missing[0]}" does not have any questions. '
                "All subjects must have questions to activate the paper."
            ),
        )


def fill_question_placeholders(question: dict, index: int) -> dict:
    """Blank text or options read back as ``Question n`` / ``Option X``."""
    filled = dict(question)
    filled["question_text"] = (question.get("question_text") or "").strip() or f"Question {index + 1}"
    for letter in "abcd":
        field = f"option_{letter}"
        filled[field] = question.get(field) or f"Option {letter.upper()}"
    filled["correct_option"] = question.get("correct_option") or "A"
    return filled


def paper_questions(db: Database, paper: Mapping) -> List[dict]:
    """All questions of a paper, subject rows first-to-last, placeholders filled."""
    order = {row.get("subject_id"): i for i, row in enumerate(paper.get("subjects") or [])}
    questions = list(db["questions"].find({"paper_id": paper["paper_id"]}).sort("_id", 1))
    questions.sort(key=lambda q: order.get(q.get("subject_id"), len(order)))
    return [fill_question_placeholders(q, i) for i, q in enumerate(questions)]
