import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

from ..database import utcnow
from ..schemas.site import GlobalSettings

logger = logging.getLogger(__name__)

GLOBAL_SECTION = "global"
SLIDER_SECTION = "slider"
SLIDER_KEY = re.compile(r"^slider(\d+)_(.+)$")


def upsert_item(db: Database, section: str, key: str, value: str) -> dict:
    if not section or not key:
        raise HTTPException(status_code=400, detail="Section and key are required")
    return db["cms_contents"].find_one_and_update(
        {"section": section, "key": key},
        {"$set": {"value": value, "updated_at": utcnow()}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def upsert_batch(db: Database, items: Iterable[Mapping]) -> List[dict]:
    """Upsert every item, or none if any of them lacks a section or key."""
    items = list(items)
    for index, item in enumerate(items):
        if not item.get("section") or not item.get("key"):
            raise HTTPException(
                status_code=400,
                detail=f"Item {index + 1} is missing section or key",
            )
    saved = [upsert_item(db, i["section"], i["key"], i.get("value") or "") for i in items]
    logger.info("Saved %d CMS items", len(saved))
    return saved


def section_items(db: Database, section: str) -> List[dict]:
    return list(db["cms_contents"].find({"section": section}).sort("key", 1))


def global_settings(db: Database) -> GlobalSettings:
    known = GlobalSettings.model_fields
    stored = {
        item["key"]: item.get("value") or ""
        for item in section_items(db, GLOBAL_SECTION)
        if item["key"] in known
    }
    return GlobalSettings(**stored)


def save_global_settings(db: Database, settings: GlobalSettings) -> GlobalSettings:
    upsert_batch(
        db,
        [
            {"section": GLOBAL_SECTION, "key": key, "value": value}
            for key, value in settings.model_dump(exclude_unset=True).items()
        ],
    )
    return global_settings(db)


def slider_content(db: Database, slider_id: Optional[str] = None) -> Dict[str, Dict[str, str]]:
    """Slider fields grouped by slide number, read from ``slider<n>_<field>`` keys."""
    query: dict = {"section": SLIDER_SECTION}
    if slider_id:
        query["key"] = {"$regex": f"^slider{re.escape(slider_id)}_"}
    slides: Dict[str, Dict[str, str]] = {}
    for item in db["cms_contents"].find(query).sort("key", 1):
        match = SLIDER_KEY.match(item["key"])
        if match:
            slides.setdefault(match.group(1), {})[match.group(2)] = item.get("value") or ""
    return slides


def save_slider(db: Database, slider_id: str, fields: Mapping[str, str]) -> Dict[str, str]:
    if not fields:
        raise HTTPException(
            status_code=400,
            detail="Invalid request format. Expected 'slider_id' and slider data.",
        )
    upsert_batch(
        db,
        [
            {"section": SLIDER_SECTION, "key": f"slider{slider_id}_{field}", "value": value}
            for field, value in fields.items()
        ],
    )
    logger.info("Updated slider %s (%d fields)", slider_id, len(fields))
    return slider_content(db, slider_id).get(slider_id, {})
