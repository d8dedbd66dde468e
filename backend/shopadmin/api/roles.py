"""Role catalogue and page access checks."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models, repositories
from ..auth import get_current_user, require_permission
from ..database import get_session
from ..permissions import (
    ROLE_HIERARCHY,
    available_roles,
    can_access_page,
    permissions_for,
    role_display_name,
)

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("")
def list_roles(db: Session = Depends(get_session), user: models.User = Depends(require_permission("ROLES", "READ"))):
    """All roles, highest level first, with permissions and active user counts."""
    counts = repositories.UserRepository(db).count_by_role(models.UserStatus.ACTIVE)
    roles = []
    for role in sorted(ROLE_HIERARCHY, key=ROLE_HIERARCHY.get, reverse=True):
        roles.append({
            "role": role.value,
            "level": ROLE_HIERARCHY[role],
            "display_name": role_display_name(role),
            "permissions": permissions_for(role),
            "user_count": counts.get(role.value, 0),
        })
    return {"roles": roles}


@router.get("/me")
def my_role(user: models.User = Depends(get_current_user)):
    return {
        "role": user.role.value,
        "level": ROLE_HIERARCHY[user.role],
        "display_name": role_display_name(user.role),
        "permissions": permissions_for(user.role),
        "assignable_roles": [r.value for r in available_roles(user.role)],
    }


@router.get("/check")
def check_page(path: str, user: models.User = Depends(get_current_user)):
    return {"path": path, "allowed": can_access_page(user.role, path)}
