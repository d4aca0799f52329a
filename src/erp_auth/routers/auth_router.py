from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from erp_auth.auth import permissions
from erp_auth.auth.dependencies import get_company_context, get_engine, get_principal
from erp_auth.auth.engine import AuthEngine
from erp_auth.auth.jwt import revoke_token
from erp_auth.auth.models import Principal, ResolvedContext
from erp_auth.auth.principal_resolver import build_principal
from erp_auth.configs.logging_config import get_logger
from erp_auth.domain.entities.access import LoginRequest
from erp_auth.services.login_service import LoginService
from erp_auth.utils.response import success

log = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def principal_payload(principal: Principal) -> dict[str, Any]:
    return {
        "user": {
            "id": principal.id,
            "email": principal.email,
            "name": principal.name,
            "status": principal.status.value,
            "confirmed": principal.confirmed,
            "primaryCompanyId": principal.primary_company_id,
            "hasGlobalRole": principal.has_global_role,
        },
        "roles": [
            {
                "kind": a.kind.value,
                "role": a.role.value,
                "companyId": a.company_id,
            }
            for a in principal.role_assignments
        ],
        "globalPermissions": sorted(permissions.global_permissions(principal)),
        "accessibleCompanyIds": sorted(principal.accessible_company_ids),
    }


def context_payload(ctx: ResolvedContext) -> dict[str, Any]:
    company = ctx.company
    return {
        "companyContext": (
            None
            if company is None
            else {"id": company.id, "status": company.status.value, "plan": company.plan}
        ),
        "crossTenant": ctx.is_cross_tenant,
        "permissions": ctx.permissions.to_dict(),
    }


def _login_service(request: Request) -> LoginService:
    return request.app.state.login_service


@router.post("/login")
async def login(request: Request, body: LoginRequest) -> dict:
    token, user = await _login_service(request).login(body)
    payload = principal_payload(build_principal(user))
    payload.update(
        {
            "token": token,
            "tokenType": "bearer",
            "expiresIn": request.app.state.settings.jwt_expires_seconds,
        }
    )
    return success(payload, message="logged in")


@router.get("/me")
async def me(principal: Principal = Depends(get_principal)) -> dict:
    return success(principal_payload(principal))


@router.post("/logout")
async def logout(
    request: Request,
    principal: Principal = Depends(get_principal),
    engine: AuthEngine = Depends(get_engine),
) -> dict:
    revoke_token(request.state.token, request.state.claims, engine.revocations)
    await engine.principals.invalidate(principal.id)
    log.info("auth.logout user_id=%s", principal.id)
    return success({"ok": True}, message="logged out")


@router.get("/context")
async def context(ctx: ResolvedContext = Depends(get_company_context)) -> dict:
    return success(context_payload(ctx))
