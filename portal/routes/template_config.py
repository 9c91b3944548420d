from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pymongo import ReturnDocument
from pymongo.database import Database

from ..auth.dependencies import get_current_active_user, require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.certificates import TemplateConfigIn, TemplateConfigOut, TemplateType
from ..schemas.core import Envelope, ok
from ..services.certificates import (
    active_template,
    load_template_config,
    render_preview,
    template_config_from_doc,
)

router = APIRouter()


@router.get("", response_model=Envelope[Optional[TemplateConfigOut]])
def get_template_config(
    template_id: str = Query(..., alias="templateId"),
    type: TemplateType = Query(...),
    _: dict = Depends(get_current_active_user),
    db: Database = Depends(get_db),
):
    doc = db["template_configs"].find_one({"template_id": template_id, "type": type})
    return ok(template_config_from_doc(doc) if doc else None)


@router.post("", response_model=Envelope[TemplateConfigOut])
def save_template_config(
    payload: TemplateConfigIn,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = db["template_configs"].find_one_and_update(
        {"template_id": payload.template_id, "type": payload.type},
        {"$set": {**payload.model_dump(), "updated_at": utcnow()}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return ok(template_config_from_doc(doc), "Template configuration saved")


@router.put("/{id}", response_model=Envelope[TemplateConfigOut])
def update_template_config(
    id: str,
    payload: TemplateConfigIn,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = db["template_configs"].find_one_and_update(
        {"_id": to_object_id(id, "configuration ID")},
        {"$set": {**payload.model_dump(), "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise HTTPException(status_code=404, detail="Template configuration not found")
    return ok(template_config_from_doc(doc), "Template configuration updated")


@router.get("/preview")
def preview_template(
    template_id: Optional[str] = Query(None, alias="templateId"),
    type: TemplateType = Query("certificate"),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if template_id:
        template = db["backgrounds"].find_one({"_id": to_object_id(template_id, "template ID")})
        if template is None:
            raise HTTPException(status_code=404, detail="Template not found")
    else:
        template = active_template(db, type)
    template_config = load_template_config(db, template, type)
    return Response(content=render_preview(template, template_config), media_type="image/png")
