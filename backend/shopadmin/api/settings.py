"""Store settings endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import SettingsUpdate
from ..store_settings import SettingsService

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
def get_settings(db: Session = Depends(get_session), user: models.User = Depends(require_permission("SETTINGS", "READ"))):
    return SettingsService(db).all()


@router.get("/{section}")
def get_section(section: str, db: Session = Depends(get_session), user: models.User = Depends(require_permission("SETTINGS", "READ"))):
    return SettingsService(db).section(section)


@router.put("")
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("SETTINGS", "UPDATE"))):
    """Merge `data` into one settings `section` and return the section."""
    try:
        data = SettingsService(db).update(user, payload.section, payload.data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "settings updated", "section": payload.section, "data": data}
