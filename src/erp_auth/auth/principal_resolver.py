from __future__ import annotations

import time
from dataclasses import replace

from erp_auth.auth import permissions
from erp_auth.auth.models import Principal
from erp_auth.cache.session_cache import CacheEntry, Clock, SessionCache
from erp_auth.configs.logging_config import get_logger
from erp_auth.configs.settings import Settings
from erp_auth.domain.entities.user import UserRecord, UserStatus
from erp_auth.errors import UserInactive, UserNotConfirmed, UserNotFound
from erp_auth.repositories.stores import UserStore

log = get_logger(__name__)


def principal_cache_key(user_id: str) -> str:
    return f"user:{user_id}"


def validate_user_status(user: UserRecord, settings: Settings) -> None:
    """Raise unless the account may act. Shared by request auth and login."""
    if settings.require_confirmed_user and not user.confirmed:
        log.info("auth.principal.not_confirmed user_id=%s", user.id)
        raise UserNotConfirmed()
    if user.status in (UserStatus.INACTIVE, UserStatus.SUSPENDED):
        log.info("auth.principal.inactive user_id=%s status=%s", user.id, user.status.value)
        raise UserInactive()
    if user.status is UserStatus.PENDING and not settings.allow_pending_users:
        log.info("auth.principal.pending user_id=%s", user.id)
        raise UserInactive("account pending activation")


def build_principal(user: UserRecord) -> Principal:
    """Assemble a principal from the user's active assignments and derive its flags."""
    active = tuple(a for a in user.role_assignments if a.is_active)
    principal = Principal(
        id=user.id,
        email=user.email,
        name=user.name,
        status=user.status,
        confirmed=user.confirmed,
        role_assignments=active,
        primary_company_id=user.primary_company_id,
        has_global_role=False,
        accessible_company_ids=frozenset(),
    )
    return replace(
        principal,
        has_global_role=permissions.has_any_global_role(principal),
        accessible_company_ids=permissions.accessible_company_ids(principal),
    )


class PrincipalResolver:
    """
    user id -> Principal, consulting the session cache before the user store.

    Only fully successful loads are written to the cache. Any operation that
    changes a user's roles or status must call `invalidate`/`invalidate_all`
    before it returns.
    """

    def __init__(
        self,
        user_store: UserStore,
        cache: SessionCache,
        settings: Settings,
        clock: Clock = time.time,
    ):
        self._users = user_store
        self._cache = cache
        self._settings = settings
        self._clock = clock

    async def resolve(self, user_id: str) -> Principal:
        key = principal_cache_key(user_id)
        caching = self._settings.session_cache_enabled

        if caching:
            entry = await self._cache.get(key)
            if entry is not None:
                log.debug("auth.principal.cache_hit user_id=%s", user_id)
                return entry.principal

        user = await self._users.load_user_by_id(user_id)
        if user is None:
            log.info("auth.principal.not_found user_id=%s", user_id)
            raise UserNotFound()

        validate_user_status(user, self._settings)
        principal = build_principal(user)

        if caching:
            await self._cache.set(
                key,
                CacheEntry(
                    principal=principal,
                    cached_at=self._clock(),
                    ttl_seconds=self._settings.session_cache_ttl_seconds,
                ),
            )
        log.info(
            "auth.principal.loaded user_id=%s global=%s companies=%s",
            principal.id,
            principal.has_global_role,
            len(principal.accessible_company_ids),
        )
        return principal

    async def invalidate(self, user_id: str) -> None:
        await self._cache.delete(principal_cache_key(user_id))
        log.info("auth.principal.invalidated user_id=%s", user_id)

    async def invalidate_all(self) -> None:
        await self._cache.clear()
        log.info("auth.principal.invalidated_all")
