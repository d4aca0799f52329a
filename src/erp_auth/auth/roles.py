"""
Role vocabulary.

Global roles apply platform-wide; company roles are always scoped to exactly
one company. `normalize_role` is the only place raw role strings coming from
outside (request bodies, stored documents, legacy data) become roles.
"""
from __future__ import annotations

from enum import Enum


class RoleKind(str, Enum):
    GLOBAL = "global"
    COMPANY = "company"


class GlobalRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    SYSTEM_ADMIN = "system_admin"


class CompanyRole(str, Enum):
    ADMIN_COMPANY = "admin_company"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    VIEWER = "viewer"


# Highest to lowest. Only used to pick a label, never to inherit permissions.
COMPANY_ROLE_HIERARCHY: tuple[CompanyRole, ...] = (
    CompanyRole.ADMIN_COMPANY,
    CompanyRole.MANAGER,
    CompanyRole.EMPLOYEE,
    CompanyRole.VIEWER,
)

_LEGACY_ALIASES: dict[str, str] = {
    "admin_empresa": CompanyRole.ADMIN_COMPANY.value,
    "admin": CompanyRole.ADMIN_COMPANY.value,
    "superadmin": GlobalRole.SUPER_ADMIN.value,
}


def normalize_role(raw: str | GlobalRole | CompanyRole, kind: RoleKind | str) -> GlobalRole | CompanyRole:
    """
    Map a raw role value to the canonical enum for `kind`.

    Raises ValueError for unknown roles and for roles of the other kind
    (e.g. `manager` given as a global role).
    """
    kind = RoleKind(kind)
    if isinstance(raw, (GlobalRole, CompanyRole)):
        value = raw.value
    else:
        value = str(raw).strip().lower()
        value = _LEGACY_ALIASES.get(value, value)

    enum_cls = GlobalRole if kind is RoleKind.GLOBAL else CompanyRole
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"unknown {kind.value} role: {raw!r}") from None
