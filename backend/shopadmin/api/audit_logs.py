"""Audit log listing."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..services import AuditService
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("")
def list_audit_logs(
    entity_type: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("AUDIT_LOGS", "READ")),
):
    return AuditService(db).list(params, entity_type)
