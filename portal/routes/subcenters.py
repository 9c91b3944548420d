import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from ..auth.dependencies import Scope, get_staff_scope, require_admin
from ..auth.security import generate_password, get_password_hash
from ..database import get_db, log_activity, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.people import (
    SubcenterCreate,
    SubcenterOut,
    SubcenterRegistration,
    SubcenterStatusUpdate,
    SubcenterUpdate,
)
from ..services.identifiers import generate_center_id, generate_unique

logger = logging.getLogger(__name__)

router = APIRouter()


def _subcenter_doc_to_out(doc: dict) -> SubcenterOut:
    return SubcenterOut(
        id=str(doc["_id"]),
        center_id=doc["center_id"],
        name=doc["name"],
        owner_name=doc.get("owner_name"),
        email=doc.get("email"),
        phone=doc.get("phone"),
        address=doc.get("address"),
        logo_url=doc.get("logo_url"),
        owner_image_url=doc.get("owner_image_url"),
        photo_id_url=doc.get("photo_id_url"),
        is_active=doc.get("is_active", True),
        created_at=doc.get("created_at"),
    )


def _get_subcenter(db: Database, id: str) -> dict:
    doc = db["subcenters"].find_one({"_id": to_object_id(id, "sub-center ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="SubCenter not found")
    return doc


@router.post("", response_model=Envelope[SubcenterRegistration], status_code=201)
def create_subcenter(
    payload: SubcenterCreate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Please provide all required fields: name")
    center_id = generate_unique(db, "subcenters", "center_id", generate_center_id)
    password = generate_password()
    now = utcnow()
    doc = payload.model_dump()
    doc.update(
        {
            "center_id": center_id,
            "hashed_password": get_password_hash(password),
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
    )
    result = db["subcenters"].insert_one(doc)
    doc["_id"] = result.inserted_id
    log_activity(
        db,
        f"New sub-center {payload.name} registered",
        "subcenter",
        doc["_id"],
        "SubCenter",
        center_id=center_id,
    )
    logger.info("Registered sub-center %s", center_id)
    registration = SubcenterRegistration(
        id=str(doc["_id"]),
        login_id=center_id,
        password=password,
        subcenter=_subcenter_doc_to_out(doc),
    )
    return ok(registration, "Sub-center registered")


@router.get("", response_model=Envelope[list[SubcenterOut]])
def list_subcenters(
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    query = {} if scope.is_admin else {"center_id": scope.center_id}
    docs = db["subcenters"].find(query).sort("created_at", -1)
    return ok([_subcenter_doc_to_out(d) for d in docs])


@router.get("/{id}", response_model=Envelope[SubcenterOut])
def get_subcenter(
    id: str,
    scope: Scope = Depends(get_staff_scope),
    db: Database = Depends(get_db),
):
    doc = _get_subcenter(db, id)
    if not scope.is_admin and doc["center_id"] != scope.center_id:
        raise HTTPException(status_code=404, detail="SubCenter not found")
    return ok(_subcenter_doc_to_out(doc))


@router.put("/{id}", response_model=Envelope[SubcenterOut])
def update_subcenter(
    id: str,
    payload: SubcenterUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_subcenter(db, id)
    changes = payload.model_dump(exclude_unset=True)
    if changes:
        changes["updated_at"] = utcnow()
        db["subcenters"].update_one({"_id": doc["_id"]}, {"$set": changes})
        doc.update(changes)
    return ok(_subcenter_doc_to_out(doc), "Sub-center updated")


@router.patch("/{id}/status", response_model=Envelope[SubcenterOut])
def set_subcenter_status(
    id: str,
    payload: SubcenterStatusUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_subcenter(db, id)
    db["subcenters"].update_one(
        {"_id": doc["_id"]}, {"$set": {"is_active": payload.is_active, "updated_at": utcnow()}}
    )
    doc["is_active"] = payload.is_active
    logger.info("Sub-center %s active=%s", doc["center_id"], payload.is_active)
    state = "activated" if payload.is_active else "deactivated"
    return ok(_subcenter_doc_to_out(doc), f"Sub-center {state}")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_subcenter(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_subcenter(db, id)
    db["subcenters"].delete_one({"_id": doc["_id"]})
    return ok({"id": id}, "Sub-center deleted")
