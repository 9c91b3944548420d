from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..database import get_db
from ..schemas.core import Envelope, ok
from ..schemas.site import HomePage
from ..services.cms import global_settings, section_items
from .cms import _cms_doc_to_out
from .courses import _course_doc_to_out

router = APIRouter()


@router.get("/home", response_model=Envelope[HomePage])
def home_page(db: Database = Depends(get_db)):
    """Everything the marketing homepage renders, in one call."""
    courses = db["courses"].find({"is_active": True}).sort("created_at", -1)
    return ok(
        HomePage(
            settings=global_settings(db),
            home=[_cms_doc_to_out(d) for d in section_items(db, "home")],
            courses=[_course_doc_to_out(c) for c in courses],
        )
    )
