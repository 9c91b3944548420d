from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from .config import MONGO_DB_NAME, MONGO_URL

_client: MongoClient | None = None


def get_mongo_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(MONGO_URL, tz_aware=True)
    return _client


def get_db():
    client = get_mongo_client()
    return client[MONGO_DB_NAME]


def ensure_indexes(db: Database) -> None:
    db["courses"].create_index("code", unique=True)
    db["subjects"].create_index("code", unique=True)
    db["students"].create_index("student_id", unique=True)
    db["students"].create_index("center_id")
    db["subcenters"].create_index("center_id", unique=True)
    db["exam_papers"].create_index("paper_id", unique=True)
    db["questions"].create_index([("paper_id", ASCENDING), ("subject_id", ASCENDING)])
    db["exam_applications"].create_index(
        [("exam_paper_id", ASCENDING), ("student_id", ASCENDING)], unique=True
    )
    db["exam_applications"].create_index("certificate_no", unique=True, sparse=True)
    db["template_configs"].create_index(
        [("template_id", ASCENDING), ("type", ASCENDING)], unique=True
    )
    db["cms_contents"].create_index(
        [("section", ASCENDING), ("key", ASCENDING)], unique=True
    )
    db["student_enquiries"].create_index("application_id", unique=True)
    db["activities"].create_index([("created_at", DESCENDING)])
    db["gallery_items"].create_index([("category", ASCENDING), ("is_active", ASCENDING)])
    db["gallery_items"].create_index([("item_type", ASCENDING), ("is_active", ASCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_object_id(value: str, what: str = "ID") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {what} format")


def log_activity(
    db: Database,
    activity: str,
    type_: str = "other",
    entity_id: ObjectId | None = None,
    entity_model: str | None = None,
    center_id: str | None = None,
    metadata: dict | None = None,
) -> None:
    db["activities"].insert_one(
        {
            "activity": activity,
            "type": type_,
            "entity_id": entity_id,
            "entity_model": entity_model,
            "center_id": center_id,
            "metadata": metadata or {},
            "created_at": utcnow(),
        }
    )
