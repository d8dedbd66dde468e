"""Inventory endpoints: stock overview, adjustments and movement history."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import StockAdjustment
from ..services import InventoryService
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("")
def list_inventory(
    search: str = "",
    low_stock: bool = False,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("INVENTORY", "READ")),
):
    return InventoryService(db).list(params, search, low_stock)


@router.post("/{product_id}/adjust")
def adjust_stock(
    product_id: int,
    payload: StockAdjustment,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("INVENTORY", "UPDATE")),
):
    """Add (positive `change`) or remove (negative `change`) stock."""
    try:
        return InventoryService(db).adjust(user, product_id, payload.change, payload.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{product_id}/logs")
def stock_history(
    product_id: int,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("INVENTORY", "READ")),
):
    return InventoryService(db).history(product_id, params)
