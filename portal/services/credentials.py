import logging
import re
from typing import List, Optional

from fastapi import HTTPException
from pymongo.database import Database

from ..auth.security import generate_password, get_password_hash
from ..database import to_object_id, utcnow
from ..schemas.people import CredentialOut, PasswordReset

logger = logging.getLogger(__name__)

PASSWORD_MASK = "********"

# credential type -> (collection, login id field)
SOURCES = {
    "student": ("students", "student_id"),
    "subcenter": ("subcenters", "center_id"),
}


def _credential(doc: dict, type_: str) -> CredentialOut:
    _, field = SOURCES[type_]
    return CredentialOut(
        id=str(doc["_id"]),
        type=type_,
        user_id=doc.get(field) or "",
        name=doc.get("name") or "",
        email=doc.get("email") or "",
        password=PASSWORD_MASK,
    )


def list_credentials(db: Database, search: Optional[str] = None) -> List[CredentialOut]:
    items: List[CredentialOut] = []
    for type_, (collection, field) in SOURCES.items():
        query: dict = {}
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query = {"$or": [{"name": pattern}, {"email": pattern}, {field: pattern}]}
        items.extend(_credential(doc, type_) for doc in db[collection].find(query).sort("name", 1))
    return items


def reset_password(db: Database, type_: str, id: str) -> PasswordReset:
    if type_ not in SOURCES:
        raise HTTPException(status_code=400, detail="Credential type must be student or subcenter")
    collection, field = SOURCES[type_]
    oid = to_object_id(id)
    password = generate_password()
    doc = db[collection].find_one({"_id": oid})
    if doc is None:
        raise HTTPException(status_code=404, detail=f"{type_.capitalize()} not found")
    db[collection].update_one(
        {"_id": oid},
        {"$set": {"hashed_password": get_password_hash(password), "updated_at": utcnow()}},
    )
    logger.info("Password reset for %s %s", type_, doc.get(field))
    return PasswordReset(id=id, type=type_, user_id=doc.get(field) or "", password=password)
