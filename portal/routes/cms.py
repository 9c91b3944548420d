import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pymongo.database import Database

from ..auth.dependencies import require_admin
from ..database import get_db
from ..schemas.core import Envelope, ok
from ..schemas.site import CmsBatch, CmsItem, CmsItemOut, GlobalSettings, SliderSave
from ..services.cms import (
    GLOBAL_SECTION,
    global_settings,
    save_global_settings,
    save_slider,
    slider_content,
    upsert_batch,
    upsert_item,
)
from ..services.uploads import FAVICON_FORMATS, LOGO_FORMATS, MB, store_image

logger = logging.getLogger(__name__)

router = APIRouter()


def _cms_doc_to_out(doc: dict) -> CmsItemOut:
    return CmsItemOut(
        id=str(doc["_id"]),
        section=doc["section"],
        key=doc["key"],
        value=doc.get("value") or "",
        updated_at=doc.get("updated_at"),
    )


@router.get("", response_model=Envelope[list[CmsItemOut]])
def list_cms(
    section: Optional[str] = Query(None),
    db: Database = Depends(get_db),
):
    query = {"section": section} if section else {}
    docs = db["cms_contents"].find(query).sort([("section", 1), ("key", 1)])
    return ok([_cms_doc_to_out(d) for d in docs])


@router.post("", response_model=Envelope[CmsItemOut])
def save_cms_item(
    payload: CmsItem,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = upsert_item(db, payload.section, payload.key, payload.value)
    return ok(_cms_doc_to_out(doc), "Content saved")


@router.post("/batch", response_model=Envelope[list[CmsItemOut]])
def save_cms_batch(
    payload: CmsBatch,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    docs = upsert_batch(db, [item.model_dump() for item in payload.items])
    return ok([_cms_doc_to_out(d) for d in docs], f"{len(docs)} items saved")


@router.get("/global-settings", response_model=Envelope[GlobalSettings])
def get_global_settings(db: Database = Depends(get_db)):
    return ok(global_settings(db))


@router.put("/global-settings", response_model=Envelope[GlobalSettings])
def put_global_settings(
    payload: GlobalSettings,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return ok(save_global_settings(db, payload), "Settings saved")


@router.get("/slider", response_model=Envelope[Dict[str, Dict[str, str]]])
def get_slider(
    id: Optional[str] = Query(None, pattern=r"^\d+$"),
    db: Database = Depends(get_db),
):
    return ok(slider_content(db, id))


@router.post("/slider", response_model=Envelope[Dict[str, str]])
def post_slider(
    payload: SliderSave,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    slide = save_slider(db, payload.slider_id, payload.fields)
    return ok(slide, f"Slider {payload.slider_id} content updated successfully")


@router.post("/logo", response_model=Envelope[CmsItemOut])
def upload_logo(
    file: UploadFile = File(...),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    stored = store_image(file, "branding", LOGO_FORMATS, 2 * MB)
    doc = upsert_item(db, GLOBAL_SECTION, "logo", stored.url)
    return ok(_cms_doc_to_out(doc), "Logo uploaded")


@router.post("/favicon", response_model=Envelope[CmsItemOut])
def upload_favicon(
    file: UploadFile = File(...),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    stored = store_image(file, "branding", FAVICON_FORMATS, 1 * MB)
    doc = upsert_item(db, GLOBAL_SECTION, "favicon", stored.url)
    return ok(_cms_doc_to_out(doc), "Favicon uploaded")
