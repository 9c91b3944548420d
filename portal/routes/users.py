from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from ..auth.dependencies import require_admin
from ..database import get_db
from ..schemas.core import Envelope, ok
from ..schemas.people import CredentialList, CredentialType, PasswordReset
from ..services.credentials import list_credentials, reset_password

router = APIRouter()


@router.get("/credentials", response_model=Envelope[CredentialList])
def get_credentials(
    search: Optional[str] = Query(None),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return ok(CredentialList(items=list_credentials(db, search)))


@router.post("/credentials/{type}/{id}/reset", response_model=Envelope[PasswordReset])
def reset_credentials(
    type: CredentialType,
    id: str,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return ok(reset_password(db, type, id), "Password reset. Share it now; it will not be shown again.")
