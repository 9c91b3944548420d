from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from ..auth.dependencies import require_admin
from ..database import get_db, to_object_id, utcnow
from ..schemas.core import Envelope, ok
from ..schemas.site import TeamMemberIn, TeamMemberOut, TeamMemberUpdate

router = APIRouter()


def _member_doc_to_out(doc: dict) -> TeamMemberOut:
    return TeamMemberOut(
        id=str(doc["_id"]),
        name=doc["name"],
        position=doc["position"],
        description=doc["description"],
        image_url=doc["image_url"],
        order=doc.get("order") or 0,
        created_at=doc.get("created_at"),
    )


def _get_member(db: Database, id: str) -> dict:
    doc = db["team_members"].find_one({"_id": to_object_id(id, "team member ID")})
    if doc is None:
        raise HTTPException(status_code=404, detail="Team member not found")
    return doc


@router.get("", response_model=Envelope[list[TeamMemberOut]])
def list_team(db: Database = Depends(get_db)):
    return ok([_member_doc_to_out(d) for d in db["team_members"].find().sort("order", 1)])


@router.get("/{id}", response_model=Envelope[TeamMemberOut])
def get_team_member(id: str, db: Database = Depends(get_db)):
    return ok(_member_doc_to_out(_get_member(db, id)))


@router.post("", response_model=Envelope[TeamMemberOut], status_code=201)
def add_team_member(
    payload: TeamMemberIn,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    # New members go to the end of the list
    last = db["team_members"].find_one(sort=[("order", -1)])
    doc = payload.model_dump()
    doc.update({"order": (last["order"] + 1) if last else 1, "created_at": utcnow()})
    doc["_id"] = db["team_members"].insert_one(doc).inserted_id
    return ok(_member_doc_to_out(doc), "Team member added successfully")


@router.put("/{id}", response_model=Envelope[TeamMemberOut])
def update_team_member(
    id: str,
    payload: TeamMemberUpdate,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_member(db, id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        changes["updated_at"] = utcnow()
        db["team_members"].update_one({"_id": doc["_id"]}, {"$set": changes})
        doc.update(changes)
    return ok(_member_doc_to_out(doc), "Team member updated successfully")


@router.delete("/{id}", response_model=Envelope[dict])
def delete_team_member(
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    doc = _get_member(db, id)
    db["team_members"].delete_one({"_id": doc["_id"]})
    return ok({"id": id}, "Team member deleted successfully")
