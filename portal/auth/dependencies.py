from dataclasses import dataclass
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pymongo.database import Database

from ..database import get_db
from .security import decode_access_token, verify_password


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

# role -> (collection, login field)
PRINCIPAL_SOURCES = {
    "admin": ("users", "username"),
    "atc": ("subcenters", "center_id"),
    "student": ("students", "student_id"),
}


def find_principal_for_login(db: Database, role: str, identifier: str) -> dict | None:
    collection, field = PRINCIPAL_SOURCES[role]
    if role == "admin":
        query = {"$or": [{"username": identifier}, {"email": identifier}]}
    else:
        query = {field: identifier}
    return db[collection].find_one(query)


def authenticate(db: Database, role: str, identifier: str, password: str) -> dict | None:
    doc = find_principal_for_login(db, role, identifier)
    if not doc or not verify_password(password, doc.get("hashed_password", "")):
        return None
    return doc


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)
) -> dict:
    token_data = decode_access_token(token)
    if token_data is None or token_data.role not in PRINCIPAL_SOURCES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    collection, _ = PRINCIPAL_SOURCES[token_data.role]
    try:
        doc = db[collection].find_one({"_id": ObjectId(token_data.subject)})
    except InvalidId:
        doc = None
    if doc is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    doc["role"] = token_data.role
    return doc


def get_current_active_user(current_user: dict = Depends(get_current_user)) -> dict:
    if not current_user.get("is_active", True):
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_admin(current_user: dict = Depends(get_current_active_user)) -> dict:
    if current_user["role"] != "admin":
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return current_user


def require_staff(current_user: dict = Depends(get_current_active_user)) -> dict:
    if current_user["role"] not in ["admin", "atc"]:
        raise HTTPException(status_code=403, detail="Admin or ATC privileges required")
    return current_user


def require_student(current_user: dict = Depends(get_current_active_user)) -> dict:
    if current_user["role"] != "student":
        raise HTTPException(status_code=403, detail="Student privileges required")
    return current_user


@dataclass(frozen=True)
class Scope:
    """What the current principal may see.

    Admin and ATC screens share one endpoint each; the scope narrows the
    query instead of a second copy of the handler.
    """

    role: str
    center_id: Optional[str] = None
    principal_id: Optional[ObjectId] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def student_filter(self) -> dict:
        if self.role == "atc":
            return {"center_id": self.center_id}
        if self.role == "student":
            return {"_id": self.principal_id}
        return {}

    def application_filter(self) -> dict:
        if self.role == "atc":
            return {"center_id": self.center_id}
        if self.role == "student":
            return {"student_id": self.principal_id}
        return {}

    def activity_filter(self) -> dict:
        if self.role == "atc":
            return {"center_id": self.center_id}
        if self.role == "student":
            return {"entity_id": self.principal_id}
        return {}

    def allows_student(self, student: dict) -> bool:
        if self.role == "atc":
            return student.get("center_id") == self.center_id
        if self.role == "student":
            return student.get("_id") == self.principal_id
        return True

    def allows_application(self, application: dict) -> bool:
        if self.role == "atc":
            return application.get("center_id") == self.center_id
        if self.role == "student":
            return application.get("student_id") == self.principal_id
        return True


def get_scope(current_user: dict = Depends(get_current_active_user)) -> Scope:
    role = current_user["role"]
    return Scope(
        role=role,
        center_id=current_user.get("center_id") if role != "admin" else None,
        principal_id=current_user["_id"],
    )


def get_staff_scope(current_user: dict = Depends(require_staff)) -> Scope:
    return get_scope(current_user)
