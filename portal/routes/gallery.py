import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pymongo.database import Database

from ..auth.dependencies import require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.site import GalleryCategory, GalleryItemIn, GalleryItemOut, GalleryItemType, GalleryItemUpdate
from ..services.uploads import LOGO_FORMATS, MB, remove_stored, store_image

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_GALLERY_BYTES = 5 * MB


def _gallery_doc_to_out(doc: dict) -> GalleryItemOut:
    return GalleryItemOut(
        id=str(doc["_id"]),
        item_type=doc["item_type"],
        title=doc["title"],
        description=doc.get("description") or "",
        category=doc["category"],
        image_url=doc.get("image_url"),
        video_url=doc.get("video_url"),
        thumbnail_url=doc.get("thumbnail_url") or "",
        is_active=doc.get("is_active", True),
        order=doc.get("order") or 0,
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


def _get_item(db: Database, id: str) -> dict:
    doc = db["gallery_items"].find_one({"_id": to_object_id(id, "gallery item ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Gallery item not found")
    return doc


def _check_media(item: dict) -> None:
    if item["item_type"] == "image" and not item.get("image_url"):
        raise HTTPException(status_code=400, detail="Image URL is required for image items")
    if item["item_type"] == "video" and not item.get("video_url"):
        raise HTTPException(status_code=400, detail="Video URL is required for video items")


@router.get("", response_model=Envelope[list[GalleryItemOut]])
def list_gallery(
    category: Optional[str] = Query(None),
    item_type: Optional[GalleryItemType] = Query(None, alias="itemType"),
    db: Database = Depends(get_db),
):
    query: dict = {"is_active": True}
    if category and category != "all":
        query["category"] = category
    if item_type:
        query["item_type"] = item_type
    docs = db["gallery_items"].find(query).sort([("order", 1), ("created_at", -1)])
    return ok([_gallery_doc_to_out(d) for d in docs])


@router.post("/upload", response_model=Envelope[dict], status_code=201)
def upload_gallery_image(
    file: UploadFile = File(...),
    category: GalleryCategory = Form(...),
    _: dict = Depends(require_admin),
):
    stored = store_image(file, f"gallery/{category}", LOGO_FORMATS, MAX_GALLERY_BYTES)
    return ok({"url": stored.url, "width": stored.width, "height": stored.height}, "Image uploaded")


@router.get("/{id}", response_model=Envelope[GalleryItemOut])
def get_gallery_item(id: str, db: Database = Depends(get_db)):
    return ok(_gallery_doc_to_out(_get_item(db, id)))


@router.post("", response_model=Envelope[GalleryItemOut], status_code=201)
def create_gallery_item(
    payload: GalleryItemIn,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = payload.model_dump()
    _check_media(doc)
    now = utcnow()
    doc.update({"created_at": now, "updated_at": now})
    doc["_id"] = db["gallery_items"].insert_one(doc).inserted_id
    logger.info("Created %s gallery item %s in %s", doc["item_type"], doc["_id"], doc["category"])
    return ok(_gallery_doc_to_out(doc), "Gallery item created successfully")


@router.put("/{id}", response_model=Envelope[GalleryItemOut])
def update_gallery_item(
    id: str,
    payload: GalleryItemUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_item(db, id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    _check_media({**doc, **changes})
    changes["updated_at"] = utcnow()
    db["gallery_items"].update_one({"_id": doc["_id"]}, {"$set": changes})
    doc.update(changes)
    return ok(_gallery_doc_to_out(doc), "Gallery item updated successfully")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_gallery_item(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_item(db, id)
    db["gallery_items"].delete_one({"_id": doc["_id"]})
    for url in (doc.get("image_url"), doc.get("thumbnail_url")):
        remove_stored(url or "")
    return ok({"id": id}, "Gallery item deleted successfully")
