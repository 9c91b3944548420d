import io
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Iterable

from fastapi import HTTPException, UploadFile
from PIL import Image, UnidentifiedImageError

from .. import config

logger = logging.getLogger(__name__)

MB = 1024 * 1024
EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}
TEMPLATE_FORMATS = ("JPEG", "PNG", "WEBP")
LOGO_FORMATS = ("JPEG", "PNG", "GIF", "WEBP")
FAVICON_FORMATS = ("PNG",)
DOCUMENT_EXTENSIONS = ("pdf", "doc", "docx")


@dataclass
class StoredImage:
    url: str
    path: str
    width: int
    height: int
    format: str


def inspect_image(data: bytes, allowed_formats: Iterable[str], max_bytes: int) -> tuple[str, int, int]:
    """Validate raw upload bytes; returns (format, width, height)."""
    allowed = tuple(allowed_formats)
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {max_bytes // MB}MB",
        )
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
            fmt = image.format
            width, height = image.size
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise HTTPException(status_code=400, detail="Uploaded file is not a valid image")
    if fmt not in allowed:
        names = ", ".join(f.lower() for f in allowed)
        raise HTTPException(
            status_code=400, detail=f"Invalid file type. Allowed types: {names}"
        )
    return fmt, width, height


def store_image(upload: UploadFile, folder: str, allowed_formats: Iterable[str], max_bytes: int) -> StoredImage:
    data = upload.file.read()
    try:
        fmt, width, height = inspect_image(data, allowed_formats, max_bytes)
    except HTTPException as exc:
        logger.warning("Rejected upload %s for %s: %s", upload.filename, folder, exc.detail)
        raise
    name = f"{uuid.uuid4().hex}.{EXTENSIONS[fmt]}"
    directory = os.path.join(config.UPLOAD_DIR, folder)
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, name)
    with open(path, "wb") as fh:
        fh.write(data)
    url = f"{config.UPLOAD_URL_PREFIX.rstrip('/')}/{folder}/{name}"
    logger.info("Stored %s upload %s (%dx%d)", folder, url, width, height)
    return StoredImage(url=url, path=path, width=width, height=height, format=fmt)


def store_document(upload: UploadFile, folder: str, extensions: Iterable[str], max_bytes: int) -> str:
    """Save a non-image upload as-is; returns its public URL."""
    allowed = tuple(extensions)
    extension = os.path.splitext(upload.filename or "")[1].lstrip(".").lower()
    if extension not in allowed:
        raise HTTPException(
            status_code=400, detail=f"Invalid file type. Allowed types: {', '.join(allowed)}"
        )
    data = upload.file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {max_bytes // MB}MB",
        )
    name = f"{uuid.uuid4().hex}.{extension}"
    directory = os.path.join(config.UPLOAD_DIR, folder)
    os.makedirs(directory, exist_ok=True)
    with open(os.path.join(directory, name), "wb") as fh:
        fh.write(data)
    url = f"{config.UPLOAD_URL_PREFIX.rstrip('/')}/{folder}/{name}"
    logger.info("Stored %s document %s (%d bytes)", folder, url, len(data))
    return url


def remove_stored(url: str) -> None:
    prefix = config.UPLOAD_URL_PREFIX.rstrip("/") + "/"
    if not url or not url.startswith(prefix):
        return
    path = os.path.join(config.UPLOAD_DIR, url[len(prefix):])
    if os.path.isfile(path):
        os.remove(path)
