from __future__ import annotations

import pytest

from erp_auth.auth.engine import build_engine
from erp_auth.cache.session_cache import MemorySessionCache
from erp_auth.configs.settings import Settings
from erp_auth.services.access_admin_service import AccessAdminService
from erp_auth.services.login_service import LoginService

from fakes import FakeClock, FakeCompanyStore, FakeUserStore


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret="unit-test-secret",
        session_cache_backend="memory",
        session_cache_ttl_seconds=300,
        session_cache_sweep_seconds=300,
    )


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def company_store() -> FakeCompanyStore:
    return FakeCompanyStore()


@pytest.fixture
def cache(clock) -> MemorySessionCache:
    return MemorySessionCache(sweep_interval=300, clock=clock)


@pytest.fixture
def engine(settings, user_store, company_store, cache, clock):
    return build_engine(settings, user_store, company_store, cache, clock=clock)


@pytest.fixture
def service(engine, user_store, company_store) -> AccessAdminService:
    return AccessAdminService(user_store, company_store, engine.principals)


@pytest.fixture
def login_service(settings, user_store, clock) -> LoginService:
    return LoginService(user_store, settings, clock=clock)
