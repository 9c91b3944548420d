import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from ..auth.dependencies import Scope, get_scope, get_staff_scope
from ..database import get_db, log_activity, to_object_id, utcnow
from ..schemas.certificates import CertificateRow, CertificateSave, CertificateView, MarksheetView
from ..schemas.core import Envelope, ok
from ..services.certificates import (
    AUTO_PRINT_DELAY_MS,
    DOWNLOAD_UNAVAILABLE,
    active_template,
    assign_missing_numbers,
    certificate_number_for,
    format_issue_date,
    is_certificate_eligible,
    load_template_config,
    marksheet_subjects,
    overlay_layout,
)
from ..services.grading import calculate_grade
from ..services.offline_marks import normalize_subjects, resolve_photo_url
from .backgrounds import _background_doc_to_out

logger = logging.getLogger(__name__)

router = APIRouter()


def _scoped_application(db: Database, application_id: str, scope: Scope) -> dict:
    doc = db["exam_applications"].find_one({"_id": to_object_id(application_id, "application ID")})
    if doc is None or not scope.allows_application(doc):
        raise HTTPException(status_code=404, detail="Exam application not found")
    return doc


def _student_and_course(db: Database, application: dict) -> tuple[dict, Optional[dict]]:
    student = db["students"].find_one({"_id": application["student_id"]})
    if student is None:
        raise HTTPException(status_code=404, detail="Student record not found for this application")
    course = db["courses"].find_one({"_id": student.get("course")}) if student.get("course") else None
    return student, course


def _certificate_view(db: Database, application: dict, auto_print_delay_ms: Optional[int] = None) -> CertificateView:
    student, course = _student_and_course(db, application)
    template = active_template(db, "certificate")
    template_config = load_template_config(db, template, "certificate")
    percentage = float(application.get("percentage") or 0)
    number, is_temp = certificate_number_for(application)
    return CertificateView(
        application_id=str(application["_id"]),
        student_name=student.get("name") or "",
        student_id=student.get("student_id") or "",
        course_name=(course or {}).get("name") or student.get("course_name") or "",
        duration=str((course or {}).get("duration") or ""),
        percentage=percentage,
        percentage_text=f"{percentage:.2f}%",
        grade=calculate_grade(percentage),
        issue_date=format_issue_date(),
        certificate_no=number,
        certificate_no_is_temp=is_temp,
        photo_url=resolve_photo_url(student.get("photo_url"), student.get("student_id") or ""),
        template=_background_doc_to_out(template) if template else None,
        config=template_config,
        layout=overlay_layout(template_config),
        auto_print_delay_ms=auto_print_delay_ms,
    )


def _marksheet_view(db: Database, application: dict, auto_print_delay_ms: Optional[int] = None) -> MarksheetView:
    if not application.get("subject_marks"):
        raise HTTPException(status_code=400, detail="Marks have not been entered for this application")
    student, course = _student_and_course(db, application)
    subject_ids = (course or {}).get("subjects") or []
    by_id = {s["_id"]: s for s in db["subjects"].find({"_id": {"$in": subject_ids}})}
    subjects = normalize_subjects([by_id[s] for s in subject_ids if s in by_id])
    rows = marksheet_subjects(subjects, application["subject_marks"])
    template = active_template(db, "marksheet")
    template_config = load_template_config(db, template, "marksheet")
    percentage = float(application.get("percentage") or 0)
    number, is_temp = certificate_number_for(application)
    return MarksheetView(
        application_id=str(application["_id"]),
        student_name=student.get("name") or "",
        student_id=student.get("student_id") or "",
        father_name=student.get("father_name"),
        course_name=(course or {}).get("name") or student.get("course_name") or "",
        duration=str((course or {}).get("duration") or ""),
        subjects=rows,
        total_marks=sum(r.total for r in rows),
        max_marks=sum(r.max_total for r in rows),
        percentage=percentage,
        percentage_text=f"{percentage:.2f}%",
        grade=calculate_grade(percentage),
        issue_date=format_issue_date(),
        certificate_no=number,
        certificate_no_is_temp=is_temp,
        photo_url=resolve_photo_url(student.get("photo_url"), student.get("student_id") or ""),
        template=_background_doc_to_out(template) if template else None,
        config=template_config,
        layout=overlay_layout(template_config),
        auto_print_delay_ms=auto_print_delay_ms,
    )


@router.get("", response_model=Envelope[list[CertificateRow]])
def list_certificates(
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    query = scope.application_filter()
    query.update({"paper_type": "offline", "status": "approved", "percentage": {"$gt": 0}})
    applications = list(db["exam_applications"].find(query).sort("created_at", -1))

    student_ids = [a["student_id"] for a in applications]
    students = {s["_id"]: s for s in db["students"].find({"_id": {"$in": student_ids}})}
    paper_ids = [a["exam_paper_id"] for a in applications]
    papers = {p["_id"]: p for p in db["exam_papers"].find({"_id": {"$in": paper_ids}})}

    eligible = [a for a in applications if is_certificate_eligible(a, students.get(a["student_id"]))]
    assign_missing_numbers(db, eligible)

    rows = []
    for application in eligible:
        student = students[application["student_id"]]
        number, is_temp = certificate_number_for(application)
        percentage = float(application.get("percentage") or 0)
        rows.append(
            CertificateRow(
                application_id=str(application["_id"]),
                student_id=student.get("student_id") or "",
                student_name=student["name"],
                course_name=student.get("course_name"),
                paper_name=(papers.get(application["exam_paper_id"]) or {}).get("paper_name"),
                percentage=percentage,
                grade=calculate_grade(percentage),
                certificate_no=number,
                processing=is_temp,
            )
        )
    return ok(rows)


@router.post("", response_model=Envelope[CertificateRow])
def save_certificate_number(
    payload: CertificateSave,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    application = _scoped_application(db, payload.exam_application_id, scope)
    holder = db["exam_applications"].find_one({"certificate_no": payload.certificate_no})
    if holder is not None and holder["_id"] != application["_id"]:
        raise HTTPException(
            status_code=409,
            detail=f"Certificate number {payload.certificate_no} is already assigned",
        )
    db["exam_applications"].update_one(
        {"_id": application["_id"]},
        {"$set": {"certificate_no": payload.certificate_no, "updated_at": utcnow()}},
    )
    application["certificate_no"] = payload.certificate_no
    student = db["students"].find_one({"_id": application["student_id"]}) or {}
    log_activity(
        db,
        f"Certificate {payload.certificate_no} issued to {student.get('name', 'student')}",
        "certificate",
        application["_id"],
        "ExamApplication",
        center_id=application.get("center_id"),
    )
    logger.info("Saved certificate %s for application %s", payload.certificate_no, application["_id"])
    percentage = float(application.get("percentage") or 0)
    row = CertificateRow(
        application_id=str(application["_id"]),
        student_id=student.get("student_id") or "",
        student_name=student.get("name") or "",
        course_name=student.get("course_name"),
        percentage=percentage,
        grade=calculate_grade(percentage),
        certificate_no=payload.certificate_no,
    )
    return ok(row, "Certificate number saved")


@router.get("/{application_id}", response_model=Envelope[CertificateView])
def view_certificate(
    application_id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    application = _scoped_application(db, application_id, scope)
    return ok(_certificate_view(db, application))


@router.get("/{application_id}/print", response_model=Envelope[CertificateView])
def print_certificate(
    application_id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    application = _scoped_application(db, application_id, scope)
    return ok(_certificate_view(db, application, AUTO_PRINT_DELAY_MS))


@router.get("/{application_id}/marksheet", response_model=Envelope[MarksheetView])
def view_marksheet(
    application_id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    application = _scoped_application(db, application_id, scope)
    return ok(_marksheet_view(db, application))


@router.get("/{application_id}/marksheet/print", response_model=Envelope[MarksheetView])
def print_marksheet(
    application_id: str,
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    application = _scoped_application(db, application_id, scope)
    return ok(_marksheet_view(db, application, AUTO_PRINT_DELAY_MS))


@router.get("/{application_id}/download")
def download_certificate(
    application_id: str,
    _: Scope = Depends(get_scope),
):
    raise HTTPException(status_code=503, detail=DOWNLOAD_UNAVAILABLE)
