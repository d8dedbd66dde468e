"""Category endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import CategoryIn
from ..services import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("")
def list_categories(
    include_inactive: bool = False,
    parent_id: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("CATEGORIES", "READ")),
):
    """List categories; `parent_id=null` returns root categories only."""
    try:
        return CategoryService(db).list(include_inactive, parent_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CATEGORIES", "CREATE"))):
    try:
        return CategoryService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CATEGORIES", "READ"))):
    return CategoryService(db).get(category_id)


@router.put("/{category_id}")
def update_category(category_id: int, payload: CategoryIn, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CATEGORIES", "UPDATE"))):
    try:
        return CategoryService(db).update(category_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CATEGORIES", "DELETE"))):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "category deleted"}
