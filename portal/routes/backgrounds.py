import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pymongo.database import Database

from ..auth.dependencies import get_current_active_user, require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.certificates import BackgroundOut
from ..schemas.core import Envelope, ok
from ..services.uploads import MB, TEMPLATE_FORMATS, remove_stored, store_image

logger = logging.getLogger(__name__)

router = APIRouter()

BACKGROUND_TYPES = ("certificate", "marksheet", "subcenter")
MAX_TEMPLATE_BYTES = 5 * MB


def _background_doc_to_out(doc: dict) -> BackgroundOut:
    return BackgroundOut(
        id=str(doc["_id"]),
        name=doc["name"],
        type=doc["type"],
        image_url=doc["image_url"],
        width=doc.get("width"),
        height=doc.get("height"),
        is_active=doc.get("is_active", False),
        created_at=doc.get("created_at"),
    )


def _get_background(db: Database, id: str) -> dict:
    doc = db["backgrounds"].find_one({"_id": to_object_id(id, "template ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return doc


@router.get("", response_model=Envelope[list[BackgroundOut]])
def list_backgrounds(
    type: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    query: dict = {}
    if type:
        query["type"] = type
    if active is not None:
        query["is_active"] = active
    docs = db["backgrounds"].find(query).sort("created_at", -1)
    return ok([_background_doc_to_out(d) for d in docs])


@router.post("/upload", response_model=Envelope[BackgroundOut], status_code=201)
def upload_background(
    file: UploadFile = File(...),
    type: str = Form(...),
    name: str = Form(...),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if type not in BACKGROUND_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid template type. Must be certificate, marksheet, or subcenter",
        )
    if not name.strip():
        raise HTTPException(status_code=400, detail="Missing required fields")
    stored = store_image(file, f"templates/{type}", TEMPLATE_FORMATS, MAX_TEMPLATE_BYTES)
    doc = {
        "name": name.strip(),
        "type": type,
        "image_url": stored.url,
        "width": stored.width,
        "height": stored.height,
        "is_active": False,
        "created_at": utcnow(),
    }
    result = db["backgrounds"].insert_one(doc)
    doc["_id"] = result.inserted_id
    return ok(_background_doc_to_out(doc), "Template uploaded")


@router.put("/{id}/activate", response_model=Envelope[BackgroundOut])
def activate_background(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_background(db, id)
    db["backgrounds"].update_many(
        {"type": doc["type"], "_id": {"$ne": doc["_id"]}}, {"$set": {"is_active": False}}
    )
    db["backgrounds"].update_one({"_id": doc["_id"]}, {"$set": {"is_active": True}})
    doc["is_active"] = True
    logger.info("Activated %s template %s", doc["type"], doc["name"])
    return ok(_background_doc_to_out(doc), "Template activated")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_background(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_background(db, id)
    if doc.get("is_active"):
        raise HTTPException(
            status_code=400,
            detail="Cannot delete active template. Please set another template as active first.",
        )
    result = db["backgrounds"].delete_one({"_id": doc["_id"], "is_active": {"$ne": True}})
    if result.deleted_count == 0:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete active template. Please set another template as active first.",
        )
    remove_stored(doc["image_url"])
    db["template_configs"].delete_many({"template_id": str(doc["_id"])})
    return ok({"id": id}, "Template deleted")
