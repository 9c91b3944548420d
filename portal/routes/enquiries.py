import logging
import math
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from ..auth.dependencies import require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.core import Envelope, Page, Pagination, ok
from ..schemas.site import (
    ContactEnquiryCreate,
    ContactEnquiryOut,
    EnquiryStatusUpdate,
    StudentEnquiryCreate,
    StudentEnquiryOut,
)
from ..services.identifiers import generate_application_id, generate_unique

logger = logging.getLogger(__name__)

router = APIRouter()


def _student_enquiry_doc_to_out(doc: dict) -> StudentEnquiryOut:
    fields = {k: doc.get(k) for k in StudentEnquiryCreate.model_fields}
    fields["course"] = str(doc["course"])
    return StudentEnquiryOut(
        **fields,
        id=str(doc["_id"]),
        application_id=doc["application_id"],
        course_name=doc.get("course_name"),
        status=doc.get("status", "New"),
        created_at=doc.get("created_at"),
    )


def _contact_doc_to_out(doc: dict) -> ContactEnquiryOut:
    return ContactEnquiryOut(
        id=str(doc["_id"]),
        name=doc["name"],
        email=doc["email"],
        phone=doc.get("phone"),
        subject=doc.get("subject"),
        message=doc["message"],
        created_at=doc.get("created_at"),
    )


def _paginate(db: Database, collection: str, query: dict, page: int, limit: int):
    total = db[collection].count_documents(query)
    docs = (
        db[collection]
        .find(query)
        .sort("created_at", -1)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    pagination = Pagination(
        total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)
    )
    return list(docs), pagination


def _search(term: Optional[str], fields: list[str]) -> dict:
    if not term:
        return {}
    pattern = {"$regex": re.escape(term), "$options": "i"}
    return {"$or": [{f: pattern} for f in fields]}


@router.post("/student", response_model=Envelope[StudentEnquiryOut], status_code=201)
def create_student_enquiry(payload: StudentEnquiryCreate, db: Database = Depends(get_db)):
    course = db["courses"].find_one({"_id": to_object_id(payload.course, "course ID")})
    if course is None:
        raise HTTPException(status_code=400, detail="Selected course does not exist")
    doc = payload.model_dump()
    doc.update(
        {
            "course": course["_id"],
            "course_name": course["name"],
            "application_id": generate_unique(
                db, "student_enquiries", "application_id", generate_application_id
            ),
            "status": "New",
            "created_at": utcnow(),
        }
    )
    result = db["student_enquiries"].insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("New course application %s for %s", doc["application_id"], course["code"])
    return ok(_student_enquiry_doc_to_out(doc), "Application submitted successfully")


@router.get("/student", response_model=Envelope[Page[StudentEnquiryOut]])
def list_student_enquiries(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    query = _search(search, ["name", "email", "phone", "application_id"])
    if status:
        query["status"] = status
    docs, pagination = _paginate(db, "student_enquiries", query, page, limit)
    items = [_student_enquiry_doc_to_out(d) for d in docs]
    return ok(Page[StudentEnquiryOut](items=items, pagination=pagination))


@router.patch("/student/{id}", response_model=Envelope[StudentEnquiryOut])
def update_student_enquiry(
    id: str,
    payload: EnquiryStatusUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    oid = to_object_id(id, "enquiry ID")
    doc = db["student_enquiries"].find_one({"_id": oid})
    if doc is None:
        raise HTTPException(status_code=404, detail="Enquiry not found")
    db["student_enquiries"].update_one(
        {"_id": oid}, {"$set": {"status": payload.status, "updated_at": utcnow()}}
    )
    doc["status"] = payload.status
    return ok(_student_enquiry_doc_to_out(doc), "Enquiry updated")


@router.delete("/student/{id}", response_model=Envelope[dict])
def delete_student_enquiry(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    result = db["student_enquiries"].delete_one({"_id": to_object_id(id, "enquiry ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Enquiry not found")
    return ok({"id": id}, "Enquiry deleted")


@router.post("/contact", response_model=Envelope[ContactEnquiryOut], status_code=201)
def create_contact_enquiry(payload: ContactEnquiryCreate, db: Database = Depends(get_db)):
    doc = payload.model_dump()
    doc["created_at"] = utcnow()
    result = db["contact_enquiries"].insert_one(doc)
    doc["_id"] = result.inserted_id
    return ok(_contact_doc_to_out(doc), "Thank you for contacting us")


@router.get("/contact", response_model=Envelope[Page[ContactEnquiryOut]])
def list_contact_enquiries(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    query = _search(search, ["name", "email", "phone", "subject"])
    docs, pagination = _paginate(db, "contact_enquiries", query, page, limit)
    items = [_contact_doc_to_out(d) for d in docs]
    return ok(Page[ContactEnquiryOut](items=items, pagination=pagination))


@router.delete("/contact/{id}", response_model=Envelope[dict])
def delete_contact_enquiry(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    result = db["contact_enquiries"].delete_one({"_id": to_object_id(id, "enquiry ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Enquiry not found")
    return ok({"id": id}, "Enquiry deleted")
