"""Brand endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import BrandIn, BrandUpdate
from ..services import BrandService

router = APIRouter(prefix="/brands", tags=["brands"])


@router.get("")
def list_brands(
    include_inactive: bool = False,
    search: str = "",
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("BRANDS", "READ")),
):
    return BrandService(db).list(include_inactive, search)


@router.post("", status_code=201)
def create_brand(payload: BrandIn, db: Session = Depends(get_session), user: models.User = Depends(require_permission("BRANDS", "CREATE"))):
    try:
        return BrandService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{brand_id}")
def get_brand(brand_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("BRANDS", "READ"))):
    return BrandService(db).get(brand_id)


@router.put("/{brand_id}")
def update_brand(brand_id: int, payload: BrandUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("BRANDS", "UPDATE"))):
    try:
        return BrandService(db).update(brand_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{brand_id}")
def delete_brand(brand_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("BRANDS", "DELETE"))):
    try:
        BrandService(db).delete(brand_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "brand deleted"}
