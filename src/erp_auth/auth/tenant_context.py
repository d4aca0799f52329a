"""
Tenant-context resolution: which company a request is scoped to, and whether
the caller may act on it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bson import ObjectId

from erp_auth.auth import permissions
from erp_auth.auth.models import CompanyContext, PermissionSnapshot, Principal, ResolvedContext
from erp_auth.configs.logging_config import get_logger
from erp_auth.errors import (
    CompanyAccessDenied,
    CompanyNotFound,
    CompanyRequired,
    CompanySuspended,
    InvalidCompanyId,
)
from erp_auth.repositories.stores import CompanyStore
from erp_auth.utils.time_utils import dt_to_iso

log = get_logger(__name__)


@dataclass(frozen=True)
class CompanyHints:
    """Candidate company ids harvested from the request, one per source."""

    path: Any = None
    body: Any = None
    query: Any = None
    header: Any = None


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def candidate_company_ids(principal: Principal, hints: CompanyHints) -> list[str]:
    """Non-empty candidates in precedence order: primary company, path, body, query, header."""
    ordered = (principal.primary_company_id, hints.path, hints.body, hints.query, hints.header)
    return [c for c in (_clean(v) for v in ordered) if c is not None]


def is_valid_company_id(company_id: str) -> bool:
    return ObjectId.is_valid(company_id)


def snapshot(principal: Principal, company_id: str | None) -> PermissionSnapshot:
    return PermissionSnapshot(
        global_permissions=permissions.global_permissions(principal),
        company_permissions=(
            permissions.company_permissions(principal, company_id) if company_id else frozenset()
        ),
    )


class TenantContextResolver:
    def __init__(self, company_store: CompanyStore):
        self._companies = company_store

    async def resolve_context(self, principal: Principal, hints: CompanyHints) -> ResolvedContext:
        candidates = candidate_company_ids(principal, hints)
        override = permissions.has_global_permission(principal, permissions.PLATFORM_OVERRIDE)

        if not candidates:
            if override:
                log.info("tenant.context.cross_tenant user_id=%s", principal.id)
                return ResolvedContext(company=None, permissions=snapshot(principal, None))
            log.info("tenant.context.company_required user_id=%s", principal.id)
            raise CompanyRequired()

        company_id = candidates[0]
        if not is_valid_company_id(company_id):
            log.info("tenant.context.invalid_company_id user_id=%s", principal.id)
            raise InvalidCompanyId()

        company = await self._companies.load_company_by_id(company_id)
        if company is None:
            log.info("tenant.context.company_not_found user_id=%s company_id=%s", principal.id, company_id)
            raise CompanyNotFound()

        has_access = permissions.can_access_company(principal, company.id)

        if company.is_suspended and not override:
            log.info("tenant.context.suspended user_id=%s company_id=%s", principal.id, company.id)
            if not has_access:
                # Outsiders learn nothing about the tenant beyond its state.
                raise CompanySuspended()
            raise CompanySuspended(
                reason=company.suspension_reason.value if company.suspension_reason else None,
                suspended_at=dt_to_iso(company.suspended_at),
            )

        if not has_access:
            log.info("tenant.context.denied user_id=%s company_id=%s", principal.id, company.id)
            raise CompanyAccessDenied()

        log.info("tenant.context.resolved user_id=%s company_id=%s", principal.id, company.id)
        return ResolvedContext(
            company=CompanyContext(id=company.id, status=company.status, plan=company.plan),
            permissions=snapshot(principal, company.id),
        )
