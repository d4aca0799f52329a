from __future__ import annotations

from typing import Protocol

from erp_auth.auth.roles import CompanyRole, GlobalRole, RoleKind
from erp_auth.domain.entities.company import CompanyRecord, SuspensionReason
from erp_auth.domain.entities.user import RoleAssignment, UserRecord, UserStatus


class UserStore(Protocol):
    async def load_user_by_id(self, user_id: str) -> UserRecord | None: ...

    async def load_user_by_email(self, email: str) -> UserRecord | None: ...


class CompanyStore(Protocol):
    async def load_company_by_id(self, company_id: str) -> CompanyRecord | None: ...


class UserAdminStore(UserStore, Protocol):
    async def add_role(self, user_id: str, assignment: RoleAssignment) -> UserRecord: ...

    async def deactivate_role(
        self,
        user_id: str,
        kind: RoleKind,
        role: GlobalRole | CompanyRole,
        company_id: str | None,
    ) -> UserRecord: ...

    async def set_status(self, user_id: str, status: UserStatus, reason: str | None = None) -> UserRecord: ...


class CompanyAdminStore(CompanyStore, Protocol):
    async def suspend(self, company_id: str, reason: SuspensionReason, suspended_by: str) -> CompanyRecord: ...

    async def reactivate(self, company_id: str) -> CompanyRecord: ...


class CredentialStore(UserStore, Protocol):
    async def load_password_hash(self, user_id: str) -> str | None: ...

    async def record_login(self, user_id: str) -> None: ...
