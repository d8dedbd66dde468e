"""Product catalog endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import ProductCreate, ProductUpdate
from ..services import ProductService
from ..utils.dates import date_window
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
def list_products(
    search: str = "",
    status: Optional[models.ProductStatus] = None,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("PRODUCTS", "READ")),
):
    """Paginated product list, newest first.

    `start_date`/`end_date` filter on the creation date; both bounds are
    inclusive days.
    """
    created_from, created_to = date_window(start_date, end_date)
    return ProductService(db).list(
        params,
        search=search,
        status=status,
        category_id=category_id,
        brand_id=brand_id,
        created_from=created_from,
        created_to=created_to,
    )


@router.post("", status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("PRODUCTS", "CREATE"))):
    try:
        return ProductService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("PRODUCTS", "READ"))):
    return ProductService(db).get(product_id)


@router.put("/{product_id}")
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("PRODUCTS", "UPDATE"))):
    try:
        return ProductService(db).update(product_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("PRODUCTS", "DELETE"))):
    try:
        ProductService(db).delete(product_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "product deleted"}
