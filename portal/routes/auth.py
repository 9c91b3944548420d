import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.database import Database

from ..auth.dependencies import (
    PRINCIPAL_SOURCES,
    authenticate,
    get_current_active_user,
    require_admin,
)
from ..auth.security import create_access_token, get_password_hash, verify_password
from ..database import get_db, utcnow
from ..schemas.auth import LoginRequest, Principal, ProfileUpdate, Token, UserCreate, UserOut
from ..schemas.core import Envelope, ok

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_doc_to_out(doc: dict) -> UserOut:
    return UserOut(
        id=str(doc["_id"]),
        username=doc["username"],
        full_name=doc.get("full_name"),
        email=doc["email"],
        role=doc.get("role", "admin"),
        is_active=doc.get("is_active", True),
    )


def _principal(doc: dict) -> Principal:
    role = doc["role"]
    _, login_field = PRINCIPAL_SOURCES[role]
    return Principal(
        id=str(doc["_id"]),
        role=role,
        name=doc.get("name") or doc.get("full_name") or doc.get("username"),
        email=doc.get("email"),
        login_id=doc[login_field],
        center_id=doc.get("center_id") if role != "admin" else None,
    )


def _issue_token(doc: dict, role: str) -> Token:
    claims = {"sub": str(doc["_id"]), "role": role}
    if role != "admin" and doc.get("center_id"):
        claims["center_id"] = doc["center_id"]
    return Token(access_token=create_access_token(data=claims), role=role)


def _login(db: Database, role: str, identifier: str, password: str) -> Token:
    doc = authenticate(db, role, identifier.strip(), password)
    if not doc:
        logger.warning("Failed %s login for %s", role, identifier)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not doc.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account is inactive")
    return _issue_token(doc, role)


@router.post("/register", response_model=Envelope[UserOut])
def register_user(
    payload: UserCreate,
    db: Database = Depends(get_db),
    _: dict = Depends(require_admin),
):
    existing = db["users"].find_one(
        {"$or": [{"username": payload.username}, {"email": payload.email}]}
    )
    if existing:
        raise HTTPException(status_code=400, detail="Username or email already exists")

    user_doc = {
        "username": payload.username,
        "full_name": payload.full_name,
        "email": payload.email,
        "role": "admin",
        "hashed_password": get_password_hash(payload.password),
        "is_active": True,
        "created_at": utcnow(),
    }
    result = db["users"].insert_one(user_doc)
    user_doc["_id"] = result.inserted_id
    logger.info("Registered admin user %s", payload.username)
    return ok(_user_doc_to_out(user_doc), "User registered")


@router.post("/login", response_model=Envelope[Token])
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    token = _login(db, payload.type, payload.identifier, payload.password)
    return ok(token, "Login successful")


@router.post("/token", response_model=Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)
):
    # OAuth2 form flow for the interactive docs; admins only.
    return _login(db, "admin", form_data.username, form_data.password)


@router.get("/me", response_model=Envelope[Principal])
def read_users_me(current_user: dict = Depends(get_current_active_user)):
    return ok(_principal(current_user))


@router.get("/profile", response_model=Envelope[UserOut])
def read_profile(current_user: dict = Depends(require_admin)):
    return ok(_user_doc_to_out(current_user))


@router.put("/profile", response_model=Envelope[UserOut])
def update_profile(
    payload: ProfileUpdate,
    current_user: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if not verify_password(payload.current_password, current_user.get("hashed_password", "")):
        raise HTTPException(status_code=401, detail="Current password is incorrect")
    changes: dict = {}
    if payload.email and payload.email != current_user["email"]:
        taken = db["users"].find_one({"email": payload.email, "_id": {"$ne": current_user["_id"]}})
        if taken:
            raise HTTPException(status_code=400, detail="Username or email already exists")
        changes["email"] = payload.email
    if payload.full_name is not None:
        changes["full_name"] = payload.full_name
    if payload.new_password:
        changes["hashed_password"] = get_password_hash(payload.new_password)
    if changes:
        changes["updated_at"] = utcnow()
        db["users"].update_one({"_id": current_user["_id"]}, {"$set": changes})
        current_user.update(changes)
        logger.info("Admin %s updated their profile", current_user["username"])
    return ok(_user_doc_to_out(current_user), "Profile updated successfully")
