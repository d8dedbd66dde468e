"""Order endpoints and the completed-revenue summary."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import OrderCreate, OrderUpdate
from ..services import OrderService
from ..utils.dates import date_window
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/orders", tags=["orders"])
revenue_router = APIRouter(prefix="/revenue", tags=["orders"])


@router.get("")
def list_orders(
    search: str = "",
    status: Optional[models.OrderStatus] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("ORDERS", "READ")),
):
    return OrderService(db).list(params, search, status)


@router.post("", status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("ORDERS", "CREATE"))):
    """Create a PENDING order for a customer.

    Prices are copied from the products, stock of tracked products is
    reserved and an optional `coupon_code` is applied to the subtotal.
    """
    try:
        return OrderService(db).create(user, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("ORDERS", "READ"))):
    return OrderService(db).get(order_id)


@router.put("/{order_id}")
def update_order(order_id: int, payload: OrderUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("ORDERS", "UPDATE"))):
    try:
        return OrderService(db).update(user, order_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("ORDERS", "DELETE"))):
    try:
        OrderService(db).delete(user, order_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "order deleted"}


@revenue_router.get("")
def revenue(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("ANALYTICS", "READ")),
):
    start, end = date_window(start_date, end_date)
    return OrderService(db).revenue(start, end)
