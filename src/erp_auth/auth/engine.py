from __future__ import annotations

import time
from dataclasses import dataclass

from erp_auth.auth.jwt import Clock, RevocationList, TokenVerifier
from erp_auth.auth.principal_resolver import PrincipalResolver
from erp_auth.auth.tenant_context import TenantContextResolver
from erp_auth.cache.session_cache import SessionCache
from erp_auth.configs.settings import Settings
from erp_auth.repositories.stores import CompanyStore, UserStore


@dataclass
class AuthEngine:
    settings: Settings
    cache: SessionCache
    revocations: RevocationList
    verifier: TokenVerifier
    principals: PrincipalResolver
    tenants: TenantContextResolver


def build_engine(
    settings: Settings,
    user_store: UserStore,
    company_store: CompanyStore,
    cache: SessionCache,
    clock: Clock = time.time,
) -> AuthEngine:
    revocations = RevocationList(clock=clock)
    return AuthEngine(
        settings=settings,
        cache=cache,
        revocations=revocations,
        verifier=TokenVerifier(settings, revocations, clock=clock),
        principals=PrincipalResolver(user_store, cache, settings, clock=clock),
        tenants=TenantContextResolver(company_store),
    )
