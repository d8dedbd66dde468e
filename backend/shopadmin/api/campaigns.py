"""Campaign endpoints under `/marketing/campaigns`."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..marketing import CampaignService
from ..schemas import CampaignCreate, CampaignUpdate
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/marketing/campaigns", tags=["marketing"])


@router.get("")
def list_campaigns(
    search: str = "",
    status: Optional[models.CampaignStatus] = None,
    type: Optional[models.CampaignType] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("CAMPAIGNS", "READ")),
):
    return CampaignService(db).list(params, search, status, type)


@router.post("", status_code=201)
def create_campaign(payload: CampaignCreate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CAMPAIGNS", "CREATE"))):
    try:
        return CampaignService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{campaign_id}")
def get_campaign(campaign_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CAMPAIGNS", "READ"))):
    return CampaignService(db).get(campaign_id)


@router.put("/{campaign_id}")
def update_campaign(campaign_id: int, payload: CampaignUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CAMPAIGNS", "UPDATE"))):
    try:
        return CampaignService(db).update(campaign_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{campaign_id}")
def delete_campaign(campaign_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CAMPAIGNS", "DELETE"))):
    return CampaignService(db).delete(campaign_id)
