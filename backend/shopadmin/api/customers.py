"""Customer endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import require_permission
from ..database import get_session
from ..schemas import CustomerCreate, CustomerUpdate
from ..services import CustomerService
from ..utils.dates import date_window
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("")
def list_customers(
    search: str = "",
    status: Optional[models.CustomerStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("CUSTOMERS", "READ")),
):
    created_from, created_to = date_window(start_date, end_date)
    return CustomerService(db).list(params, search=search, status=status, created_from=created_from, created_to=created_to)


@router.post("", status_code=201)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CUSTOMERS", "CREATE"))):
    try:
        return CustomerService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CUSTOMERS", "READ"))):
    return CustomerService(db).get(customer_id)


@router.put("/{customer_id}")
def update_customer(customer_id: int, payload: CustomerUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CUSTOMERS", "UPDATE"))):
    try:
        return CustomerService(db).update(customer_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{customer_id}")
def delete_customer(customer_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("CUSTOMERS", "DELETE"))):
    try:
        CustomerService(db).delete(customer_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "customer deleted"}
