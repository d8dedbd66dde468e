"""Dashboard analytics endpoint."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models
from ..analytics import AnalyticsService
from ..auth import require_permission
from ..database import get_session

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("")
def get_analytics(
    type: str = "all",
    period: str = "30days",
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("ANALYTICS", "READ")),
):
    """Return one analytics block or, for any other `type`, all of them.

    `type`: overview, products, customers, traffic or inventory.
    `period`: 30days, 90days or 12months (unknown values mean 30 days).
    """
    return AnalyticsService(db).build(type, period)
