"""Login and current-session endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session

from .. import models, services
from ..auth import get_current_user
from ..config import settings
from ..database import get_session
from ..permissions import available_roles, permissions_for, role_display_name
from ..schemas import LoginIn, TokenOut
from ..utils.rate_limit import LoginThrottle

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("shopadmin.api")
_login_throttle = LoginThrottle(settings)


def _client(request: Request):
    return request.client.host if request.client else None


def _enforce_login_rate_limit(request: Request, email: str) -> None:
    retry_after = _login_throttle.check(_client(request), email)
    if retry_after:
        logger.warning("login rate limit hit for %s", LoginThrottle.key(_client(request), email))
        raise HTTPException(
            status_code=429,
            detail=f"too many login attempts; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Exchange email and password for a bearer token."""
    _enforce_login_rate_limit(request, payload.email)
    result = services.AuthService(db).authenticate(payload.email, payload.password)
    if not result:
        raise HTTPException(status_code=401, detail="invalid credentials")
    token, user = result
    _login_throttle.succeeded(_client(request), payload.email)
    return {"access_token": token, "token_type": "bearer", "user": services.UserService.serialize(user)}


@router.get("/me")
def me(user: models.User = Depends(get_current_user)):
    out = services.UserService.serialize(user)
    out["permissions"] = permissions_for(user.role)
    out["assignable_roles"] = [r.value for r in available_roles(user.role)]
    out["role_display_name"] = role_display_name(user.role)
    return out
