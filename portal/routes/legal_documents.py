import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pymongo.database import Database

from ..auth.dependencies import require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.site import LegalDocumentOut
from ..services.uploads import DOCUMENT_EXTENSIONS, LOGO_FORMATS, MB, remove_stored, store_document, store_image

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_DOCUMENT_BYTES = 10 * MB
MAX_COVER_BYTES = 5 * MB


def _legal_doc_to_out(doc: dict) -> LegalDocumentOut:
    return LegalDocumentOut(
        id=str(doc["_id"]),
        title=doc["title"],
        description=doc.get("description") or "",
        file_name=doc.get("file_name"),
        file_url=doc.get("file_url"),
        image_url=doc.get("image_url"),
        created_by=doc.get("created_by"),
        created_at=doc.get("created_at"),
    )


def _all_documents(db: Database) -> list[LegalDocumentOut]:
    return [_legal_doc_to_out(d) for d in db["legal_documents"].find().sort("created_at", -1)]


@router.get("", response_model=Envelope[list[LegalDocumentOut]])
def list_legal_documents(
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return ok(_all_documents(db))


@router.get("/public", response_model=Envelope[list[LegalDocumentOut]])
def list_public_legal_documents(db: Database = Depends(get_db)):
    return ok(_all_documents(db))


@router.post("", response_model=Envelope[LegalDocumentOut], status_code=201)
def upload_legal_document(
    title: str = Form(""),
    description: str = Form(""),
    file: Optional[UploadFile] = File(None),
    image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if not title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    if file is None and image is None:
        raise HTTPException(
            status_code=400, detail="At least a document file or an image is required"
        )
    doc = {
        "title": title.strip(),
        "description": description,
        "file_name": None,
        "file_url": None,
        "image_url": None,
        "created_by": current_user.get("email"),
        "created_at": utcnow(),
    }
    if file is not None:
        doc["file_url"] = store_document(file, "legal/files", DOCUMENT_EXTENSIONS, MAX_DOCUMENT_BYTES)
        doc["file_name"] = file.filename
    if image is not None:
        try:
            doc["image_url"] = store_image(image, "legal/covers", LOGO_FORMATS, MAX_COVER_BYTES).url
        except HTTPException:
            remove_stored(doc["file_url"] or "")
            raise
    doc["_id"] = db["legal_documents"].insert_one(doc).inserted_id
    logger.info("Uploaded legal document %r", doc["title"])
    return ok(_legal_doc_to_out(doc), "Document uploaded successfully")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_legal_document(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = db["legal_documents"].find_one({"_id": to_object_id(id, "document ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    db["legal_documents"].delete_one({"_id": doc["_id"]})
    for url in (doc.get("file_url"), doc.get("image_url")):
        remove_stored(url or "")
    return ok({"id": id}, "Document deleted successfully")
