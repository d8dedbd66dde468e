"""Coupon endpoints under `/marketing/coupons`."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..marketing import CouponService
from ..schemas import CouponCreate, CouponUpdate
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/marketing/coupons", tags=["marketing"])


@router.get("")
def list_coupons(
    search: str = "",
    status: Optional[str] = None,
    type: Optional[models.CouponType] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("COUPONS", "READ")),
):
    """List coupons; `status` is one of `active`, `inactive` or `expired`."""
    if status is not None and status not in ("active", "inactive", "expired"):
        raise HTTPException(status_code=400, detail="status must be active, inactive or expired")
    return CouponService(db).list(params, search, status, type, sort_by, sort_order)


@router.post("", status_code=201)
def create_coupon(payload: CouponCreate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("COUPONS", "CREATE"))):
    try:
        return CouponService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{coupon_id}")
def get_coupon(coupon_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("COUPONS", "READ"))):
    return CouponService(db).get(coupon_id)


@router.put("/{coupon_id}")
def update_coupon(coupon_id: int, payload: CouponUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("COUPONS", "UPDATE"))):
    try:
        return CouponService(db).update(coupon_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{coupon_id}")
def delete_coupon(coupon_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("COUPONS", "DELETE"))):
    return CouponService(db).delete(coupon_id)
