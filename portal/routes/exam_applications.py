import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..auth.dependencies import Scope, get_scope, get_staff_scope
from ..database import get_db, log_activity, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.exams import (
    ApplicationBatchResult,
    ApplicationCreate,
    ApplicationDetail,
    ApplicationOut,
    ApplicationStats,
    ApplicationUpdate,
    MarksUpdate,
    OfflineMarksRow,
)
from ..services.exam_papers import find_paper
from ..services.offline_marks import marks_update, resolve_photo_url, result_labels
from ..services.results_excel import results_workbook
from .courses import _course_doc_to_out
from .exam_papers import _paper_doc_to_out
from .students import _student_doc_to_out
from .subjects import _subject_doc_to_out

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _application_doc_to_out(doc: dict) -> ApplicationOut:
    return ApplicationOut(
        id=str(doc["_id"]),
        exam_paper_id=str(doc["exam_paper_id"]),
        student_id=str(doc["student_id"]),
        student_name=doc.get("student_name"),
        student_id_number=doc.get("student_id_number"),
        center_id=doc.get("center_id"),
        scheduled_time=doc.get("scheduled_time"),
        paper_type=doc.get("paper_type", "online"),
        status=doc.get("status", "scheduled"),
        score=doc.get("score"),
        percentage=doc.get("percentage"),
        certificate_no=doc.get("certificate_no"),
        subject_marks=doc.get("subject_marks") or {},
        start_time=doc.get("start_time"),
        deadline=doc.get("deadline"),
        end_time=doc.get("end_time"),
        created_at=doc.get("created_at"),
    )


def get_scoped_application(db: Database, id: str, scope: Scope) -> dict:
    doc = db["exam_applications"].find_one({"_id": to_object_id(id, "application ID")})
    if doc is None or not scope.allows_application(doc):
        raise HTTPException(status_code=404, detail="Exam application not found")
    return doc


def _by_id(db: Database, collection: str, ids) -> dict:
    return {d["_id"]: d for d in db[collection].find({"_id": {"$in": list(set(ids))}})}


@router.post("", response_model=Envelope[ApplicationBatchResult], status_code=201)
def create_exam_applications(
    payload: ApplicationCreate,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    if not payload.exam_paper_id or not payload.student_ids or not payload.scheduled_time:
        raise HTTPException(status_code=400, detail="Missing required fields")
    paper = find_paper(db, payload.exam_paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail="Exam paper not found")
    paper_type = "offline" if (payload.paper_type or "").lower() == "offline" else "online"

    students = []
    for raw_id in payload.student_ids:
        student = db["students"].find_one({"_id": to_object_id(raw_id, "student ID")})
        if student is None:
            raise HTTPException(status_code=404, detail=f"Student {raw_id} not found")
        if not scope.allows_student(student):
            raise HTTPException(
                status_code=403, detail=f"Student {student['student_id']} belongs to another center"
            )
        students.append(student)

    created, skipped = [], []
    now = utcnow()
    for student in students:
        doc = {
            "exam_paper_id": paper["_id"],
            "student_id": student["_id"],
            "student_name": student.get("name"),
            "student_id_number": student.get("student_id"),
            "center_id": student.get("center_id"),
            "scheduled_time": payload.scheduled_time,
            "paper_type": paper_type,
            "status": "scheduled",
            "subject_marks": {},
            "answers": {},
            "created_at": now,
            "updated_at": now,
        }
        if db["exam_applications"].find_one(
            {"exam_paper_id": paper["_id"], "student_id": student["_id"]}, {"_id": 1}
        ):
            skipped.append(str(student["_id"]))
            continue
        try:
            result = db["exam_applications"].insert_one(doc)
        except DuplicateKeyError:
            skipped.append(str(student["_id"]))
            continue
        doc["_id"] = result.inserted_id
        created.append(doc)

    if created:
        log_activity(
            db,
            f"{len(created)} students scheduled for {paper['paper_name']}",
            "exam",
            paper["_id"],
            "ExamPaper",
            center_id=scope.center_id,
            metadata={"paper_type": paper_type},
        )
    logger.info(
        "Scheduled %d applications for paper %s (%d skipped)",
        len(created),
        paper["paper_id"],
        len(skipped),
    )
    outcome = ApplicationBatchResult(
        count=len(created),
        skipped=skipped,
        applications=[_application_doc_to_out(d) for d in created],
    )
    return ok(outcome, f"{len(created)} exam applications created")


@router.get("", response_model=Envelope[list[ApplicationDetail]])
def list_exam_applications(
    student_id: Optional[str] = Query(None, alias="studentId"),
    exam_id: Optional[str] = Query(None, alias="examId"),
    status: Optional[str] = Query(None),
    paper_type: Optional[str] = Query(None, alias="paperType"),
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    query = scope.application_filter()
    if student_id:
        oid = to_object_id(student_id, "student ID")
        if "student_id" in query and query["student_id"] != oid:
            return ok([])
        query["student_id"] = oid
    if exam_id:
        query["exam_paper_id"] = to_object_id(exam_id, "exam ID")
    if status:
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        query["status"] = {"$in": statuses}
    if paper_type:
        query["paper_type"] = paper_type.lower()

    applications = list(db["exam_applications"].find(query).sort("created_at", -1))
    students = _by_id(db, "students", [a["student_id"] for a in applications])
    papers = _by_id(db, "exam_papers", [a["exam_paper_id"] for a in applications])
    rows = []
    for application in applications:
        student = students.get(application["student_id"])
        paper = papers.get(application["exam_paper_id"])
        rows.append(
            ApplicationDetail(
                **_application_doc_to_out(application).model_dump(),
                student=_student_doc_to_out(student) if student else None,
                exam_paper=_paper_doc_to_out(paper, db) if paper else None,
            )
        )
    return ok(rows)


@router.get("/stats", response_model=Envelope[ApplicationStats])
def application_stats(
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    base = scope.application_filter()
    collection = db["exam_applications"]
    offline = {**base, "paper_type": "offline"}
    stats = ApplicationStats(
        total_offline=collection.count_documents(offline),
        offline_scheduled=collection.count_documents({**offline, "status": "scheduled"}),
        offline_approved=collection.count_documents({**offline, "status": "approved"}),
        offline_with_marks=collection.count_documents({**offline, "percentage": {"$gt": 0}}),
        online_completed=collection.count_documents(
            {**base, "paper_type": "online", "status": "completed"}
        ),
    )
    return ok(stats)


@router.get("/offline-marks", response_model=Envelope[list[OfflineMarksRow]])
def list_offline_marks(
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    query = scope.application_filter()
    query.update({"paper_type": "offline", "status": {"$in": ["approved", "scheduled"]}})
    applications = list(db["exam_applications"].find(query).sort("created_at", -1))
    students = _by_id(db, "students", [a["student_id"] for a in applications])
    papers = _by_id(db, "exam_papers", [a["exam_paper_id"] for a in applications])
    rows = []
    for application in applications:
        student = students.get(application["student_id"]) or {}
        paper = papers.get(application["exam_paper_id"]) or {}
        result_label, action_label = result_labels(
            application.get("status"), application.get("percentage")
        )
        rows.append(
            OfflineMarksRow(
                **_application_doc_to_out(application).model_dump(),
                photo_url=resolve_photo_url(
                    student.get("photo_url"), student.get("student_id") or ""
                ),
                paper_name=paper.get("paper_name"),
                course_name=student.get("course_name"),
                result_label=result_label,
                action_label=action_label,
            )
        )
    return ok(rows)


@router.get("/results.xlsx")
def export_results(
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    query = scope.application_filter()
    query.update({"status": {"$in": ["approved", "completed"]}, "percentage": {"$gt": 0}})
    applications = list(db["exam_applications"].find(query).sort("student_id_number", 1))
    papers = _by_id(db, "exam_papers", [a["exam_paper_id"] for a in applications])
    rows = [
        {**a, "paper_name": (papers.get(a["exam_paper_id"]) or {}).get("paper_name")}
        for a in applications
    ]
    return Response(
        content=results_workbook(rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="results.xlsx"'},
    )


@router.get("/{id}", response_model=Envelope[ApplicationDetail])
def get_exam_application(
    id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    application = get_scoped_application(db, id, scope)
    student = db["students"].find_one({"_id": application["student_id"]})
    paper = db["exam_papers"].find_one({"_id": application["exam_paper_id"]})
    course = None
    subjects = []
    if student and isinstance(student.get("course"), ObjectId):
        course = db["courses"].find_one({"_id": student["course"]})
    if course:
        by_id = _by_id(db, "subjects", course.get("subjects") or [])
        subjects = [by_id[s] for s in course.get("subjects") or [] if s in by_id]
    detail = ApplicationDetail(
        **_application_doc_to_out(application).model_dump(),
        student=_student_doc_to_out(student) if student else None,
        exam_paper=_paper_doc_to_out(paper, db) if paper else None,
        course=_course_doc_to_out(course) if course else None,
        subjects=[_subject_doc_to_out(s) for s in subjects],
    )
    return ok(detail)


@router.patch("/{id}", response_model=Envelope[ApplicationOut])
def update_exam_application(
    id: str,
    payload: ApplicationUpdate,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    application = get_scoped_application(db, id, scope)
    changes = payload.model_dump(exclude_none=True)
    number = changes.get("certificate_no")
    if number:
        holder = db["exam_applications"].find_one({"certificate_no": number})
        if holder is not None and holder["_id"] != application["_id"]:
            raise HTTPException(
                status_code=409, detail=f"Certificate number {number} is already assigned"
            )
    if changes:
        changes["updated_at"] = utcnow()
        db["exam_applications"].update_one({"_id": application["_id"]}, {"$set": changes})
        application.update(changes)
    return ok(_application_doc_to_out(application), "Exam application updated")


@router.put("/{id}/marks", response_model=Envelope[ApplicationOut])
def update_marks(
    id: str,
    payload: MarksUpdate,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    application = get_scoped_application(db, id, scope)
    if application.get("paper_type") != "offline":
        raise HTTPException(status_code=400, detail="Marks can only be entered for offline exams")
    if not payload.subject_marks:
        raise HTTPException(status_code=400, detail="Missing required fields: subject_marks")
    student = db["students"].find_one({"_id": application["student_id"]})
    if student is None:
        raise HTTPException(status_code=404, detail="Student record not found for this application")
    course = db["courses"].find_one({"_id": student.get("course")}) if student.get("course") else None
    if not course or not course.get("subjects"):
        raise HTTPException(status_code=400, detail="The student's course has no subjects")
    by_id = _by_id(db, "subjects", course["subjects"])
    subjects = [by_id[s] for s in course["subjects"] if s in by_id]

    marks = {k: v.model_dump() for k, v in payload.subject_marks.items()}
    changes = marks_update(marks, subjects)
    changes["updated_at"] = utcnow()
    db["exam_applications"].update_one({"_id": application["_id"]}, {"$set": changes})
    application.update(changes)
    logger.info(
        "Marks saved for application %s: score %s, %.2f%%",
        application["_id"],
        changes["score"],
        changes["percentage"],
    )
    return ok(_application_doc_to_out(application), "Marks updated successfully")
