from shopadmin.models import UserRole
from shopadmin.permissions import (
    available_roles,
    can_access_page,
    has_all_permissions,
    has_any_permission,
    has_permission,
    has_role_level,
    permission_denied_message,
    permissions_for,
    role_display_name,
)


def test_super_admin_wildcard_grants_everything():
    assert has_permission(UserRole.SUPER_ADMIN, "ROLES", "READ")
    assert has_permission(UserRole.SUPER_ADMIN, "USERS", "MANAGE_ROLES")
    assert has_permission("SUPER_ADMIN", "ANYTHING", "WHATEVER")


def test_resource_wildcard_and_exact_entries():
    # MANAGER holds PRODUCTS:* but only REPORTS:READ
    assert has_permission(UserRole.MANAGER, "PRODUCTS", "DELETE")
    assert has_permission(UserRole.MANAGER, "REPORTS", "READ")
    assert not has_permission(UserRole.MANAGER, "REPORTS", "EXPORT")
    assert not has_permission(UserRole.MANAGER, "SETTINGS", "READ")


def test_admin_cannot_manage_roles_or_read_roles():
    assert has_permission(UserRole.ADMIN, "SETTINGS", "UPDATE")
    assert has_permission(UserRole.ADMIN, "USERS", "DELETE")
    assert not has_permission(UserRole.ADMIN, "USERS", "MANAGE_ROLES")
    assert not has_permission(UserRole.ADMIN, "ROLES", "READ")


def test_staff_and_viewer_tables():
    assert has_permission(UserRole.STAFF, "ORDERS", "UPDATE")
    assert not has_permission(UserRole.STAFF, "ORDERS", "CREATE")
    assert has_permission(UserRole.STAFF, "INVENTORY", "UPDATE")
    assert not has_permission(UserRole.STAFF, "ANALYTICS", "READ")
    assert has_permission(UserRole.VIEWER, "ANALYTICS", "READ")
    assert not has_permission(UserRole.VIEWER, "PRODUCTS", "UPDATE")


def test_unknown_role_has_no_permissions():
    assert not has_permission("GUEST", "PRODUCTS", "READ")


def test_any_and_all():
    perms = [("PRODUCTS", "READ"), ("PRODUCTS", "DELETE")]
    assert has_any_permission(UserRole.VIEWER, perms)
    assert not has_all_permissions(UserRole.VIEWER, perms)
    assert has_all_permissions(UserRole.MANAGER, perms)
    assert not has_any_permission(UserRole.VIEWER, [])
    assert has_all_permissions(UserRole.VIEWER, [])


def test_role_levels_and_assignable_roles():
    assert has_role_level(UserRole.ADMIN, UserRole.MANAGER)
    assert has_role_level(UserRole.STAFF, UserRole.STAFF)
    assert not has_role_level(UserRole.VIEWER, UserRole.STAFF)
    assert available_roles(UserRole.MANAGER) == [UserRole.MANAGER, UserRole.STAFF, UserRole.VIEWER]
    assert available_roles(UserRole.SUPER_ADMIN)[0] == UserRole.SUPER_ADMIN
    assert available_roles(UserRole.VIEWER) == [UserRole.VIEWER]


def test_page_access():
    assert can_access_page(UserRole.VIEWER, "/dashboard/analytics")
    assert not can_access_page(UserRole.VIEWER, "/dashboard/products/add")
    assert not can_access_page(UserRole.ADMIN, "/dashboard/roles")
    assert can_access_page(UserRole.STAFF, "/some/unmapped/page")


def test_display_names_and_messages():
    assert role_display_name(UserRole.STAFF) == "Staff Member"
    assert "manage user roles" in permission_denied_message("USERS", "MANAGE_ROLES")
    assert permission_denied_message("PRODUCTS", "DELETE") == "You do not have permission to delete products"
    assert permission_denied_message("WIDGETS", "FROB") == "You do not have permission to perform FROB on WIDGETS"


def test_permissions_for_returns_copy():
    perms = permissions_for(UserRole.VIEWER)
    perms.append("USERS:DELETE")
    assert "USERS:DELETE" not in permissions_for(UserRole.VIEWER)
