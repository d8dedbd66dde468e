"""Role based access control.

Permissions are `RESOURCE:ACTION` strings. A role grants a permission
through an exact entry, a resource wildcard (`PRODUCTS:*`) or the global
wildcard (`*:*`). Roles are ordered by `ROLE_HIERARCHY`; a user may only
assign roles at or below their own level.
"""

from typing import Iterable, List, Tuple

from .models import UserRole

ROLE_HIERARCHY = {
    UserRole.VIEWER: 1,
    UserRole.STAFF: 2,
    UserRole.MANAGER: 3,
    UserRole.ADMIN: 4,
    UserRole.SUPER_ADMIN: 5,
}

_MANAGED = ["PRODUCTS", "CATEGORIES", "BRANDS", "ORDERS", "CUSTOMERS", "MARKETING", "COUPONS", "CAMPAIGNS", "INVENTORY"]

ROLE_PERMISSIONS = {
    UserRole.SUPER_ADMIN: ["*:*"],
    UserRole.ADMIN: (
        ["DASHBOARD:READ"]
        + [f"{r}:*" for r in _MANAGED]
        + [
            "ANALYTICS:READ", "ANALYTICS:EXPORT",
            "REPORTS:READ", "REPORTS:EXPORT",
            "SETTINGS:READ", "SETTINGS:UPDATE",
            "AUDIT_LOGS:READ",
            "USERS:READ", "USERS:CREATE", "USERS:UPDATE", "USERS:DELETE",
        ]
    ),
    UserRole.MANAGER: (
        ["DASHBOARD:READ"]
        + [f"{r}:*" for r in _MANAGED]
        + ["ANALYTICS:READ", "REPORTS:READ", "USERS:READ"]
    ),
    UserRole.STAFF: [
        "DASHBOARD:READ",
        "PRODUCTS:READ", "PRODUCTS:UPDATE",
        "CATEGORIES:READ",
        "BRANDS:READ",
        "ORDERS:READ", "ORDERS:UPDATE",
        "CUSTOMERS:READ", "CUSTOMERS:UPDATE",
        "MARKETING:READ",
        "COUPONS:READ",
        "INVENTORY:READ", "INVENTORY:UPDATE",
    ],
    UserRole.VIEWER: [
        "DASHBOARD:READ",
        "PRODUCTS:READ",
        "CATEGORIES:READ",
        "BRANDS:READ",
        "ORDERS:READ",
        "CUSTOMERS:READ",
        "ANALYTICS:READ",
        "REPORTS:READ",
        "INVENTORY:READ",
    ],
}

ROLE_DISPLAY_NAMES = {
    UserRole.SUPER_ADMIN: "Super Administrator",
    UserRole.ADMIN: "Administrator",
    UserRole.MANAGER: "Manager",
    UserRole.STAFF: "Staff Member",
    UserRole.VIEWER: "Viewer",
}

PAGE_PERMISSIONS = {
    "/dashboard": ("DASHBOARD", "READ"),
    "/dashboard/products": ("PRODUCTS", "READ"),
    "/dashboard/products/add": ("PRODUCTS", "CREATE"),
    "/dashboard/products/categories": ("CATEGORIES", "READ"),
    "/dashboard/products/brands": ("BRANDS", "READ"),
    "/dashboard/orders": ("ORDERS", "READ"),
    "/dashboard/customers": ("CUSTOMERS", "READ"),
    "/dashboard/marketing": ("MARKETING", "READ"),
    "/dashboard/marketing/coupons": ("COUPONS", "READ"),
    "/dashboard/marketing/campaigns": ("CAMPAIGNS", "READ"),
    "/dashboard/analytics": ("ANALYTICS", "READ"),
    "/dashboard/reports": ("REPORTS", "READ"),
    "/dashboard/users": ("USERS", "READ"),
    "/dashboard/roles": ("ROLES", "READ"),
    "/dashboard/settings": ("SETTINGS", "READ"),
}

_RESOURCE_NOUNS = {
    "PRODUCTS": "products",
    "ORDERS": "orders",
    "CUSTOMERS": "customers",
    "USERS": "users",
    "MARKETING": "marketing data",
    "COUPONS": "coupons",
    "ANALYTICS": "analytics",
    "SETTINGS": "system settings",
}

DENIED_MESSAGES = {
    (resource, action): f"You do not have permission to {verb} {noun}"
    for resource, noun in _RESOURCE_NOUNS.items()
    for action, verb in (("READ", "view"), ("CREATE", "create"), ("UPDATE", "update"), ("DELETE", "delete"))
}
DENIED_MESSAGES[("USERS", "MANAGE_ROLES")] = "You do not have permission to manage user roles"
DENIED_MESSAGES[("ANALYTICS", "EXPORT")] = "You do not have permission to export reports"


def _coerce(role) -> UserRole:
    return role if isinstance(role, UserRole) else UserRole(role)


def permissions_for(role) -> List[str]:
    return list(ROLE_PERMISSIONS.get(_coerce(role), []))


def has_permission(role, resource: str, action: str) -> bool:
    """Return True if `role` grants `resource:action`."""
    try:
        granted = ROLE_PERMISSIONS[_coerce(role)]
    except (KeyError, ValueError):
        return False
    return (
        f"{resource}:{action}" in granted
        or f"{resource}:*" in granted
        or "*:*" in granted
    )


def has_any_permission(role, permissions: Iterable[Tuple[str, str]]) -> bool:
    return any(has_permission(role, r, a) for r, a in permissions)


def has_all_permissions(role, permissions: Iterable[Tuple[str, str]]) -> bool:
    return all(has_permission(role, r, a) for r, a in permissions)


def has_role_level(role, required) -> bool:
    return ROLE_HIERARCHY[_coerce(role)] >= ROLE_HIERARCHY[_coerce(required)]


def available_roles(role) -> List[UserRole]:
    """Roles `role` may assign, highest first."""
    level = ROLE_HIERARCHY[_coerce(role)]
    return [r for r in sorted(ROLE_HIERARCHY, key=ROLE_HIERARCHY.get, reverse=True) if ROLE_HIERARCHY[r] <= level]


def can_access_page(role, path: str) -> bool:
    """Check a dashboard page path; pages without a mapping are open."""
    required = PAGE_PERMISSIONS.get(path)
    if required is None:
        return True
    return has_permission(role, *required)


def role_display_name(role) -> str:
    return ROLE_DISPLAY_NAMES[_coerce(role)]


def permission_denied_message(resource: str, action: str) -> str:
    return DENIED_MESSAGES.get(
        (resource, action),
        f"You do not have permission to perform {action} on {resource}",
    )
