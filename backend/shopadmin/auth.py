"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens, the dependency
`get_current_user` that validates the bearer token and returns the
corresponding `User`, and `require_permission`, a dependency factory
guarding routes with an RBAC permission.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .database import get_session
from .permissions import has_permission, permission_denied_message

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="invalid token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Raises HTTPException(401) when the token is missing, invalid or
    expired, or when the user no longer exists or is not ACTIVE.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Unauthorized")
    payload = decode_token(credentials.credentials)
    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="invalid token payload")
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="user not found")
    if user.status != models.UserStatus.ACTIVE:
        raise HTTPException(status_code=401, detail="account is not active")
    return user


def forbidden(resource: str, action: str, message: str = None) -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={
            "error": "Forbidden",
            "message": message or permission_denied_message(resource, action),
            "required_permission": f"{resource}:{action}",
        },
    )


def require_permission(resource: str, action: str):
    """Build a dependency that returns the current user if their role grants `resource:action`."""

    def dependency(user: models.User = Depends(get_current_user)) -> models.User:
        if not has_permission(user.role, resource, action):
            raise forbidden(resource, action)
        return user

    return dependency
