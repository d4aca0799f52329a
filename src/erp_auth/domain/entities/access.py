from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from erp_auth.auth.roles import RoleKind
from erp_auth.domain.entities.company import SuspensionReason


class Envelope(BaseModel):
    """Request bodies accept camelCase keys (`companyId`) as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    request_id: str | None = None


class GrantRoleRequest(Envelope):
    kind: RoleKind
    role: str
    company_id: str | None = None
    extra_permissions: list[str] = Field(default_factory=list)


class RevokeRoleRequest(Envelope):
    kind: RoleKind
    role: str
    company_id: str | None = None


class SuspendCompanyRequest(Envelope):
    reason: SuspensionReason = SuspensionReason.MANUAL_ADMIN


class UserStatusRequest(Envelope):
    reason: str | None = None


class LoginRequest(Envelope):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
