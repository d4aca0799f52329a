"""
Least-privilege rules for granting roles.

A super admin may grant anything anywhere and is the only one who may grant
global roles. Everyone else is bounded by their highest role in the target
company.
"""
from __future__ import annotations

from typing import Iterable

from erp_auth.auth import permissions
from erp_auth.auth.models import Principal
from erp_auth.auth.roles import CompanyRole, GlobalRole, RoleKind

ASSIGNABLE_ROLES: dict[CompanyRole, tuple[CompanyRole, ...]] = {
    CompanyRole.ADMIN_COMPANY: (CompanyRole.MANAGER, CompanyRole.EMPLOYEE, CompanyRole.VIEWER),
    CompanyRole.MANAGER: (CompanyRole.EMPLOYEE, CompanyRole.VIEWER),
    CompanyRole.EMPLOYEE: (),
    CompanyRole.VIEWER: (),
}


def is_super_admin(principal: Principal) -> bool:
    return any(
        a.is_active and a.kind is RoleKind.GLOBAL and a.role is GlobalRole.SUPER_ADMIN
        for a in principal.role_assignments
    )


def assignable_roles(assigner: Principal, company_id: str) -> tuple[CompanyRole, ...]:
    if is_super_admin(assigner):
        return tuple(CompanyRole)
    highest = permissions.highest_company_role(assigner, company_id)
    if highest is None:
        return ()
    return ASSIGNABLE_ROLES[highest]


def can_assign_role(
    assigner: Principal,
    role: GlobalRole | CompanyRole,
    kind: RoleKind,
    company_id: str | None = None,
) -> bool:
    if is_super_admin(assigner):
        return True
    if kind is RoleKind.GLOBAL or not company_id:
        return False
    return role in assignable_roles(assigner, company_id)


def ungrantable_permissions(
    assigner: Principal,
    kind: RoleKind,
    company_id: str | None,
    requested: Iterable[str],
) -> frozenset[str]:
    """
    Extra permission keys in `requested` the assigner may not hand out.

    Nobody but a super admin can grant a permission they do not hold
    themselves in the same scope.
    """
    requested = frozenset(requested)
    if not requested or is_super_admin(assigner):
        return frozenset()
    if kind is RoleKind.GLOBAL:
        held = permissions.global_permissions(assigner)
    elif company_id:
        held = permissions.company_permissions(assigner, company_id)
    else:
        held = frozenset()
    return requested - held
