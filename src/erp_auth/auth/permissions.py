"""
Permission catalog, role tables and the permission resolver.

All permission names should be referenced from here. Everything in this module
is pure and synchronous: it only looks at a principal's active role
assignments, never at a store.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping

from erp_auth.auth.models import Principal
from erp_auth.auth.roles import COMPANY_ROLE_HIERARCHY, CompanyRole, GlobalRole, RoleKind
from erp_auth.domain.entities.user import RoleAssignment


class GlobalPermission(str, Enum):
    # Company management
    COMPANIES_CREATE = "companies.create"
    COMPANIES_DELETE = "companies.delete"
    COMPANIES_LIST_ALL = "companies.list_all"
    COMPANIES_EDIT_ANY = "companies.edit_any"
    COMPANIES_SUSPEND = "companies.suspend"

    # Global user management
    USERS_MANAGE_GLOBAL = "users.manage_global"
    USERS_ASSIGN_GLOBAL_ROLES = "users.assign_global_roles"
    USERS_VIEW_ALL = "users.view_all"

    # System
    SYSTEM_CONFIGURE = "system.configure"
    SYSTEM_MAINTENANCE = "system.maintenance"
    SYSTEM_BACKUP = "system.backup"
    SYSTEM_LOGS = "system.logs"

    # Billing
    BILLING_MANAGE_ALL = "billing.manage_all"
    BILLING_VIEW_REVENUE = "billing.view_revenue"

    # Cross-company analytics
    ANALYTICS_CROSS_COMPANY = "analytics.cross_company"
    ANALYTICS_SYSTEM_METRICS = "analytics.system_metrics"

    # Support
    SUPPORT_ACCESS_ALL = "support.access_all"


class CompanyPermission(str, Enum):
    # Company users
    USERS_CREATE = "users.create"
    USERS_EDIT = "users.edit"
    USERS_DELETE = "users.delete"
    USERS_VIEW = "users.view"
    USERS_ASSIGN_ROLES = "users.assign_roles"
    USERS_SUSPEND = "users.suspend"

    # Company configuration
    COMPANY_EDIT = "company.edit"
    COMPANY_CONFIGURE = "company.configure"
    COMPANY_BRANDING = "company.branding"
    COMPANY_BILLING = "company.billing"

    # Inventory
    INVENTORY_CREATE = "inventory.create"
    INVENTORY_EDIT = "inventory.edit"
    INVENTORY_DELETE = "inventory.delete"
    INVENTORY_VIEW = "inventory.view"
    INVENTORY_TRANSFER = "inventory.transfer"
    INVENTORY_ADJUST = "inventory.adjust"

    # Reports
    REPORTS_VIEW = "reports.view"
    REPORTS_EXPORT = "reports.export"
    REPORTS_CREATE = "reports.create"

    # Settings
    SETTINGS_EDIT = "settings.edit"
    SETTINGS_VIEW = "settings.view"

    # Sales
    SALES_CREATE = "sales.create"
    SALES_EDIT = "sales.edit"
    SALES_VIEW = "sales.view"
    SALES_DELETE = "sales.delete"

    # Purchases
    PURCHASES_CREATE = "purchases.create"
    PURCHASES_EDIT = "purchases.edit"
    PURCHASES_VIEW = "purchases.view"
    PURCHASES_DELETE = "purchases.delete"


GLOBAL_PERMISSION_KEYS: frozenset[str] = frozenset(p.value for p in GlobalPermission)
COMPANY_PERMISSION_KEYS: frozenset[str] = frozenset(p.value for p in CompanyPermission)

# Global admins satisfy every company permission without a company assignment.
MANAGE_EVERYTHING = GlobalPermission.USERS_MANAGE_GLOBAL
# Lets a caller operate without a bound company and enter any company, suspended ones included.
PLATFORM_OVERRIDE = GlobalPermission.COMPANIES_LIST_ALL


def _keys(*perms: Enum) -> frozenset[str]:
    return frozenset(p.value for p in perms)


GLOBAL_ROLE_PERMISSIONS: Mapping[GlobalRole, frozenset[str]] = {
    GlobalRole.SUPER_ADMIN: GLOBAL_PERMISSION_KEYS,
    GlobalRole.SYSTEM_ADMIN: _keys(
        GlobalPermission.SYSTEM_CONFIGURE,
        GlobalPermission.SYSTEM_MAINTENANCE,
        GlobalPermission.SYSTEM_BACKUP,
        GlobalPermission.SYSTEM_LOGS,
    ),
}

_C = CompanyPermission

COMPANY_ROLE_PERMISSIONS: Mapping[CompanyRole, frozenset[str]] = {
    CompanyRole.ADMIN_COMPANY: COMPANY_PERMISSION_KEYS,
    CompanyRole.MANAGER: _keys(
        _C.USERS_VIEW,
        _C.USERS_ASSIGN_ROLES,
        _C.INVENTORY_CREATE,
        _C.INVENTORY_EDIT,
        _C.INVENTORY_VIEW,
        _C.INVENTORY_TRANSFER,
        _C.REPORTS_VIEW,
        _C.REPORTS_EXPORT,
        _C.SETTINGS_VIEW,
        _C.SALES_CREATE,
        _C.SALES_EDIT,
        _C.SALES_VIEW,
        _C.PURCHASES_CREATE,
        _C.PURCHASES_EDIT,
        _C.PURCHASES_VIEW,
    ),
    CompanyRole.EMPLOYEE: _keys(
        _C.USERS_VIEW,
        _C.INVENTORY_VIEW,
        _C.INVENTORY_TRANSFER,
        _C.REPORTS_VIEW,
        _C.SETTINGS_VIEW,
        _C.SALES_CREATE,
        _C.SALES_VIEW,
        _C.PURCHASES_VIEW,
    ),
    CompanyRole.VIEWER: _keys(
        _C.INVENTORY_VIEW,
        _C.REPORTS_VIEW,
        _C.SALES_VIEW,
        _C.PURCHASES_VIEW,
    ),
}


def permission_key(permission: str | Enum) -> str:
    return permission.value if isinstance(permission, Enum) else str(permission)


def _active(principal: Principal, kind: RoleKind) -> Iterable[RoleAssignment]:
    return (a for a in principal.role_assignments if a.is_active and a.kind is kind)


def _company_assignments(principal: Principal, company_id: str) -> list[RoleAssignment]:
    company_id = str(company_id)
    return [a for a in _active(principal, RoleKind.COMPANY) if a.company_id == company_id]


def _granted(assignment: RoleAssignment, table: Mapping, catalog: frozenset[str]) -> frozenset[str]:
    extras = frozenset(p for p in assignment.extra_permissions if p in catalog)
    return table[assignment.role] | extras


def global_permissions(principal: Principal) -> frozenset[str]:
    """Union of every active global assignment's table entry and extras."""
    granted: set[str] = set()
    for assignment in _active(principal, RoleKind.GLOBAL):
        granted |= _granted(assignment, GLOBAL_ROLE_PERMISSIONS, GLOBAL_PERMISSION_KEYS)
    return frozenset(granted)


def has_global_permission(principal: Principal, permission: str | GlobalPermission) -> bool:
    key = permission_key(permission)
    if key not in GLOBAL_PERMISSION_KEYS:
        return False
    return any(
        key in _granted(a, GLOBAL_ROLE_PERMISSIONS, GLOBAL_PERMISSION_KEYS)
        for a in _active(principal, RoleKind.GLOBAL)
    )


def company_permissions(principal: Principal, company_id: str) -> frozenset[str]:
    """
    Every company permission `principal` holds in `company_id`.

    Override holders get the whole company catalog. Duplicate assignments for
    the same company contribute the union of their sets.
    """
    if has_global_permission(principal, MANAGE_EVERYTHING):
        return COMPANY_PERMISSION_KEYS
    granted: set[str] = set()
    for assignment in _company_assignments(principal, company_id):
        granted |= _granted(assignment, COMPANY_ROLE_PERMISSIONS, COMPANY_PERMISSION_KEYS)
    return frozenset(granted)


def has_company_permission(
    principal: Principal, permission: str | CompanyPermission, company_id: str
) -> bool:
    if has_global_permission(principal, MANAGE_EVERYTHING):
        return True
    key = permission_key(permission)
    if key not in COMPANY_PERMISSION_KEYS:
        return False
    return any(
        key in _granted(a, COMPANY_ROLE_PERMISSIONS, COMPANY_PERMISSION_KEYS)
        for a in _company_assignments(principal, company_id)
    )


def highest_company_role(principal: Principal, company_id: str) -> CompanyRole | None:
    held = {a.role for a in _company_assignments(principal, company_id)}
    for role in COMPANY_ROLE_HIERARCHY:
        if role in held:
            return role
    return None


def has_any_global_role(principal: Principal) -> bool:
    return any(True for _ in _active(principal, RoleKind.GLOBAL))


def accessible_company_ids(principal: Principal) -> frozenset[str]:
    """Companies the principal holds an active role in; empty means all companies."""
    if has_global_permission(principal, PLATFORM_OVERRIDE):
        return frozenset()
    return frozenset(a.company_id for a in _active(principal, RoleKind.COMPANY))


def can_access_company(principal: Principal, company_id: str) -> bool:
    company_id = str(company_id)
    if has_global_permission(principal, PLATFORM_OVERRIDE):
        return True
    if principal.primary_company_id is not None and principal.primary_company_id == company_id:
        return True
    return bool(_company_assignments(principal, company_id))
