"""User administration endpoints.

Listing, creating and deleting users is guarded by the USERS permissions.
Reading or updating a single user goes through `get_current_user` because
users may always read and edit their own record; the service applies the
remaining rules.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models
from ..auth import get_current_user, require_permission
from ..database import get_session
from ..schemas import UserCreate, UserUpdate
from ..services import UserService
from ..utils.pagination import PageParams, page_params

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(
    search: str = "",
    role: Optional[models.UserRole] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: models.User = Depends(require_permission("USERS", "READ")),
):
    return UserService(db).list(params, search, role)


@router.post("", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_session), user: models.User = Depends(require_permission("USERS", "CREATE"))):
    try:
        return UserService(db).create(user, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return UserService(db).get(user, user_id)


@router.put("/{user_id}")
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return UserService(db).update(user, user_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_permission("USERS", "DELETE"))):
    try:
        UserService(db).delete(user, user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "user deleted"}
