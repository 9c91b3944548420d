from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..auth.dependencies import Scope, get_scope
from ..database import get_db
from ..schemas.core import Envelope, ok
from ..schemas.site import ActivityOut, DashboardOut

router = APIRouter()

RECENT_ACTIVITY_LIMIT = 10


def _activity_out(doc: dict) -> ActivityOut:
    return ActivityOut(
        id=str(doc["_id"]),
        activity=doc["activity"],
        type=doc.get("type", "other"),
        entity_id=str(doc["entity_id"]) if doc.get("entity_id") else None,
        entity_model=doc.get("entity_model"),
        center_id=doc.get("center_id"),
        created_at=doc.get("created_at"),
    )


@router.get("", response_model=Envelope[DashboardOut])
def dashboard(
    scope: Scope = Depends(get_scope),
    db: Database = Depends(get_db),
):
    applications = db["exam_applications"]
    app_filter = scope.application_filter()
    counts = {
        "exam_applications": applications.count_documents(app_filter),
        "completed_exams": applications.count_documents({**app_filter, "status": "completed"}),
    }
    if scope.role != "student":
        counts.update(
            {
                "students": db["students"].count_documents(scope.student_filter()),
                "courses": db["courses"].count_documents({}),
                "exam_papers": db["exam_papers"].count_documents({}),
                "pending_offline_marks": applications.count_documents(
                    {
                        **app_filter,
                        "paper_type": "offline",
                        "status": {"$in": ["scheduled", "approved"]},
                        "$or": [{"percentage": None}, {"percentage": {"$lte": 0}}],
                    }
                ),
            }
        )
    if scope.is_admin:
        counts["subcenters"] = db["subcenters"].count_documents({})

    activities = (
        db["activities"]
        .find(scope.activity_filter())
        .sort("created_at", -1)
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    return ok(
        DashboardOut(
            role=scope.role,
            counts=counts,
            recent_activities=[_activity_out(a) for a in activities],
        )
    )
