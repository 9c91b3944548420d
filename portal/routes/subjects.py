from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from ..auth.dependencies import get_current_active_user, require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.catalog import SubjectCreate, SubjectOut, SubjectUpdate
from ..schemas.core import Envelope, ok

router = APIRouter()


def _subject_doc_to_out(doc: dict) -> SubjectOut:
    return SubjectOut(
        id=str(doc["_id"]),
        name=doc["name"],
        code=doc["code"],
        description=doc.get("description"),
        total_marks=doc.get("total_marks", 100),
        total_practical_marks=doc.get("total_practical_marks", 50),
        is_active=doc.get("is_active", True),
        courses=[str(c) for c in doc.get("courses") or []],
    )


def _get_subject(db: Database, id: str) -> dict:
    doc = db["subjects"].find_one({"_id": to_object_id(id, "subject ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Subject not found")
    return doc


@router.post("", response_model=Envelope[SubjectOut], status_code=201)
def create_subject(
    payload: SubjectCreate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    existing = db["subjects"].find_one({"code": payload.code})
    if existing:
        raise HTTPException(status_code=400, detail=f"Subject with code {payload.code} already exists")
    doc = payload.model_dump()
    doc.update({"courses": [], "created_at": utcnow()})
    result = db["subjects"].insert_one(doc)
    doc["_id"] = result.inserted_id
    return ok(_subject_doc_to_out(doc), "Subject created")


@router.get("", response_model=Envelope[list[SubjectOut]])
def list_subjects(
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    return ok([_subject_doc_to_out(d) for d in db["subjects"].find().sort("name", 1)])


@router.get("/{id}", response_model=Envelope[SubjectOut])
def get_subject(
    id: str,
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    return ok(_subject_doc_to_out(_get_subject(db, id)))


@router.put("/{id}", response_model=Envelope[SubjectOut])
def update_subject(
    id: str,
    payload: SubjectUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_subject(db, id)
    changes = payload.model_dump(exclude_unset=True)
    if "code" in changes and changes["code"] != doc["code"]:
        if db["subjects"].find_one({"code": changes["code"], "_id": {"$ne": doc["_id"]}}):
            raise HTTPException(
                status_code=400, detail=f"Subject with code {changes['code']} already exists"
            )
    if changes:
        changes["updated_at"] = utcnow()
        db["subjects"].update_one({"_id": doc["_id"]}, {"$set": changes})
        doc.update(changes)
    return ok(_subject_doc_to_out(doc), "Subject updated")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_subject(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_subject(db, id)
    db["subjects"].delete_one({"_id": doc["_id"]})
    db["courses"].update_many({"subjects": doc["_id"]}, {"$pull": {"subjects": doc["_id"]}})
    return ok({"id": id}, "Subject deleted")
