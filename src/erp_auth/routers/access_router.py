from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Path, Request

from erp_auth.auth import permissions
from erp_auth.auth.dependencies import get_principal, require_company_context, require_global_permission
from erp_auth.auth.models import Principal, ResolvedContext
from erp_auth.configs.logging_config import get_logger
from erp_auth.domain.entities.access import (
    GrantRoleRequest,
    RevokeRoleRequest,
    SuspendCompanyRequest,
    UserStatusRequest,
)
from erp_auth.domain.entities.company import CompanyRecord
from erp_auth.domain.entities.user import UserRecord
from erp_auth.routers.auth_router import context_payload
from erp_auth.services.access_admin_service import AccessAdminService
from erp_auth.utils.response import success
from erp_auth.utils.time_utils import dt_to_iso

log = get_logger(__name__)

router = APIRouter(tags=["access"])


def _service(request: Request) -> AccessAdminService:
    return request.app.state.access_service


def user_payload(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "status": user.status.value,
        "confirmed": user.confirmed,
        "primaryCompanyId": user.primary_company_id,
        "roles": [
            {
                "kind": a.kind.value,
                "role": a.role.value,
                "companyId": a.company_id,
                "extraPermissions": sorted(a.extra_permissions),
                "isActive": a.is_active,
                "assignedAt": dt_to_iso(a.assigned_at),
                "assignedBy": a.assigned_by,
            }
            for a in user.role_assignments
        ],
    }


def company_payload(company: CompanyRecord) -> dict[str, Any]:
    return {
        "id": company.id,
        "name": company.name,
        "status": company.status.value,
        "plan": company.plan,
        "suspensionReason": company.suspension_reason.value if company.suspension_reason else None,
        "suspendedAt": dt_to_iso(company.suspended_at),
    }


@router.get("/companies/{companyId}/permissions")
async def company_permissions(
    request: Request,
    ctx: ResolvedContext = Depends(require_company_context()),
) -> dict:
    principal: Principal = request.state.principal
    role = permissions.highest_company_role(principal, ctx.company.id)
    data = context_payload(ctx)
    data["role"] = role.value if role else None
    return success(data)


@router.post("/users/{userId}/roles")
async def grant_role(
    request: Request,
    body: GrantRoleRequest,
    user_id: str = Path(alias="userId"),
    principal: Principal = Depends(get_principal),
) -> dict:
    log.info(
        "access.grant_role.start request_id=%s user_id=%s target_id=%s",
        body.request_id,
        principal.id,
        user_id,
    )
    user = await _service(request).grant_role(principal, user_id, body)
    return success(user_payload(user), message="role granted")


@router.delete("/users/{userId}/roles")
async def revoke_role(
    request: Request,
    body: RevokeRoleRequest,
    user_id: str = Path(alias="userId"),
    principal: Principal = Depends(get_principal),
) -> dict:
    log.info(
        "access.revoke_role.start request_id=%s user_id=%s target_id=%s",
        body.request_id,
        principal.id,
        user_id,
    )
    user = await _service(request).revoke_role(principal, user_id, body)
    return success(user_payload(user), message="role revoked")


@router.put("/users/{userId}/suspend")
async def suspend_user(
    request: Request,
    body: UserStatusRequest | None = None,
    user_id: str = Path(alias="userId"),
    principal: Principal = Depends(get_principal),
) -> dict:
    reason = body.reason if body else None
    user = await _service(request).suspend_user(principal, user_id, reason)
    return success(user_payload(user), message="user suspended")


@router.put("/users/{userId}/reactivate")
async def reactivate_user(
    request: Request,
    user_id: str = Path(alias="userId"),
    principal: Principal = Depends(get_principal),
) -> dict:
    user = await _service(request).reactivate_user(principal, user_id)
    return success(user_payload(user), message="user reactivated")


@router.put("/companies/{companyId}/suspend")
async def suspend_company(
    request: Request,
    body: SuspendCompanyRequest | None = None,
    company_id: str = Path(alias="companyId"),
    principal: Principal = Depends(require_global_permission(permissions.GlobalPermission.COMPANIES_SUSPEND)),
) -> dict:
    reason = body.reason if body else SuspendCompanyRequest().reason
    company = await _service(request).suspend_company(principal, company_id, reason)
    return success(company_payload(company), message="company suspended")


@router.put("/companies/{companyId}/reactivate")
async def reactivate_company(
    request: Request,
    company_id: str = Path(alias="companyId"),
    principal: Principal = Depends(require_global_permission(permissions.GlobalPermission.COMPANIES_SUSPEND)),
) -> dict:
    company = await _service(request).reactivate_company(principal, company_id)
    return success(company_payload(company), message="company reactivated")
