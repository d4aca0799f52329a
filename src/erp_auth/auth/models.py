from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from erp_auth.domain.entities.company import CompanyStatus
from erp_auth.domain.entities.user import RoleAssignment, UserStatus


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    issued_at: datetime
    expires_at: datetime
    token_id: str | None = None


@dataclass(frozen=True)
class Principal:
    """
    Authenticated identity for one request, cached across requests until TTL
    expiry or invalidation.

    `role_assignments` holds the active assignments as loaded, duplicates
    included. `accessible_company_ids` empty means every company.
    """

    id: str
    email: str
    name: str
    status: UserStatus
    confirmed: bool
    role_assignments: tuple[RoleAssignment, ...]
    primary_company_id: str | None
    has_global_role: bool
    accessible_company_ids: frozenset[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "status": self.status.value,
            "confirmed": self.confirmed,
            "role_assignments": [a.model_dump(mode="json") for a in self.role_assignments],
            "primary_company_id": self.primary_company_id,
            "has_global_role": self.has_global_role,
            "accessible_company_ids": sorted(self.accessible_company_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Principal":
        return cls(
            id=str(data["id"]),
            email=data["email"],
            name=data.get("name", ""),
            status=UserStatus(data["status"]),
            confirmed=bool(data["confirmed"]),
            role_assignments=tuple(RoleAssignment(**a) for a in data["role_assignments"]),
            primary_company_id=data.get("primary_company_id"),
            has_global_role=bool(data["has_global_role"]),
            accessible_company_ids=frozenset(data["accessible_company_ids"]),
        )


@dataclass(frozen=True)
class CompanyContext:
    id: str
    status: CompanyStatus
    plan: str | None


@dataclass(frozen=True)
class PermissionSnapshot:
    global_permissions: frozenset[str] = frozenset()
    company_permissions: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "global": sorted(self.global_permissions),
            "company": sorted(self.company_permissions),
        }


@dataclass(frozen=True)
class ResolvedContext:
    """Outcome of tenant-context resolution. `company` is None in cross-tenant mode."""

    company: CompanyContext | None
    permissions: PermissionSnapshot = field(default_factory=PermissionSnapshot)

    @property
    def is_cross_tenant(self) -> bool:
        return self.company is None
