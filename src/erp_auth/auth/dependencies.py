from __future__ import annotations

from typing import Any

from fastapi import Depends, Header, Request

from erp_auth.auth import permissions
from erp_auth.auth.engine import AuthEngine
from erp_auth.auth.models import Principal, ResolvedContext
from erp_auth.auth.tenant_context import CompanyHints
from erp_auth.configs.logging_config import get_logger
from erp_auth.errors import CompanyRequired, InsufficientPermissions, TokenMissing

log = get_logger(__name__)


def _bearer_token(value: str | None) -> str:
    if not value:
        raise TokenMissing()
    scheme, _, token = value.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        log.info("auth.bad_authorization_header scheme=%s", scheme or None)
        raise TokenMissing()
    return token


def get_engine(request: Request) -> AuthEngine:
    return request.app.state.auth


async def get_principal(
    request: Request,
    authorization: str | None = Header(default=None),
    engine: AuthEngine = Depends(get_engine),
) -> Principal:
    """Verify the bearer token and resolve the caller. Attached to `request.state`."""
    token = _bearer_token(authorization)
    claims = engine.verifier.verify(token)
    principal = await engine.principals.resolve(claims.user_id)

    request.state.token = token
    request.state.claims = claims
    request.state.principal = principal
    return principal


async def _body_company_id(request: Request, name: str) -> Any:
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    return body.get(name) if isinstance(body, dict) else None


async def company_hints(request: Request, engine: AuthEngine = Depends(get_engine)) -> CompanyHints:
    name = engine.settings.company_param_name
    return CompanyHints(
        path=request.path_params.get(name),
        body=await _body_company_id(request, name),
        query=request.query_params.get(name),
        header=request.headers.get(engine.settings.company_header_name),
    )


async def get_company_context(
    request: Request,
    principal: Principal = Depends(get_principal),
    hints: CompanyHints = Depends(company_hints),
    engine: AuthEngine = Depends(get_engine),
) -> ResolvedContext:
    ctx = await engine.tenants.resolve_context(principal, hints)
    request.state.company_context = ctx
    return ctx


def require_company_context():
    """Like `get_company_context`, but cross-tenant mode is not accepted."""

    async def _dep(ctx: ResolvedContext = Depends(get_company_context)) -> ResolvedContext:
        if ctx.is_cross_tenant:
            raise CompanyRequired()
        return ctx

    return _dep


def require_global_permission(permission: str | permissions.GlobalPermission):
    key = permissions.permission_key(permission)

    async def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not permissions.has_global_permission(principal, key):
            log.info("auth.guard.denied user_id=%s permission=%s", principal.id, key)
            raise InsufficientPermissions(key)
        return principal

    return _dep


def require_company_permission(permission: str | permissions.CompanyPermission):
    """Guard on the resolved company's snapshot. Cross-tenant callers need the manage-everything override."""
    key = permissions.permission_key(permission)

    async def _dep(
        principal: Principal = Depends(get_principal),
        ctx: ResolvedContext = Depends(get_company_context),
    ) -> ResolvedContext:
        if ctx.is_cross_tenant:
            if not permissions.has_global_permission(principal, permissions.MANAGE_EVERYTHING):
                raise CompanyRequired()
            return ctx
        if key not in ctx.permissions.company_permissions:
            log.info(
                "auth.guard.denied user_id=%s company_id=%s permission=%s",
                principal.id,
                ctx.company.id,
                key,
            )
            raise InsufficientPermissions(key)
        return ctx

    return _dep
