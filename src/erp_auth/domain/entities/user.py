from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from erp_auth.auth.roles import CompanyRole, GlobalRole, RoleKind, normalize_role


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"


class RoleAssignment(BaseModel):
    """
    One grant of a role to a user.

    `role` is normalized against `kind` when the assignment is built, so an
    unknown or mismatched role never makes it past construction.
    """

    model_config = ConfigDict(frozen=True)

    kind: RoleKind
    role: GlobalRole | CompanyRole
    company_id: str | None = None
    extra_permissions: frozenset[str] = Field(default_factory=frozenset)
    is_active: bool = True
    assigned_at: datetime | None = None
    assigned_by: str | None = None

    @model_validator(mode="before")
    @classmethod
    def normalize_role_for_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and "role" in data and "kind" in data:
            data = dict(data)
            data["role"] = normalize_role(data["role"], data["kind"])
        return data

    @field_validator("company_id", "assigned_by", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return str(v)

    @model_validator(mode="after")
    def check_scope(self) -> "RoleAssignment":
        if self.kind is RoleKind.COMPANY and not self.company_id:
            raise ValueError("company role assignment requires a company_id")
        if self.kind is RoleKind.GLOBAL and self.company_id:
            raise ValueError("global role assignment cannot be scoped to a company")
        return self


class UserRecord(BaseModel):
    """User as loaded from the user store."""

    id: str
    email: str
    name: str = ""
    status: UserStatus = UserStatus.PENDING
    confirmed: bool = False
    role_assignments: tuple[RoleAssignment, ...] = ()
    primary_company_id: str | None = None

    @field_validator("primary_company_id", mode="before")
    @classmethod
    def stringify_primary_company(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return str(v)
