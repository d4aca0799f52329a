from __future__ import annotations

from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from erp_auth.auth.roles import CompanyRole, GlobalRole, RoleKind
from erp_auth.configs.logging_config import get_logger
from erp_auth.configs.settings import Settings
from erp_auth.domain.entities.user import RoleAssignment, UserRecord, UserStatus
from erp_auth.errors import ConflictError, NotFoundError
from erp_auth.utils.time_utils import utc_now

log = get_logger(__name__)


def _oid(value: str | None) -> ObjectId | None:
    if value is None:
        return None
    return ObjectId(value) if ObjectId.is_valid(value) else None


def role_from_document(doc: dict[str, Any]) -> RoleAssignment:
    return RoleAssignment(
        kind=doc.get("roleType"),
        role=doc.get("role"),
        company_id=doc.get("companyId"),
        extra_permissions=doc.get("permissions") or [],
        is_active=doc.get("isActive", True),
        assigned_at=doc.get("assignedAt"),
        assigned_by=doc.get("assignedBy"),
    )


def role_to_document(assignment: RoleAssignment) -> dict[str, Any]:
    return {
        "roleType": assignment.kind.value,
        "role": assignment.role.value,
        "companyId": _oid(assignment.company_id),
        "permissions": sorted(assignment.extra_permissions),
        "isActive": assignment.is_active,
        "assignedAt": assignment.assigned_at or utc_now(),
        "assignedBy": _oid(assignment.assigned_by),
    }


def user_from_document(doc: dict[str, Any]) -> UserRecord:
    return UserRecord(
        id=str(doc["_id"]),
        email=doc.get("email", ""),
        name=doc.get("name", ""),
        status=doc.get("status") or UserStatus.PENDING,
        confirmed=bool(doc.get("confirmed", False)),
        role_assignments=tuple(role_from_document(r) for r in doc.get("roles") or []),
        primary_company_id=doc.get("primaryCompanyId"),
    )


class UserRepository:
    """Mongo-backed user store. Documents keep the `roles` sub-document layout."""

    def __init__(self, db: AsyncIOMotorDatabase, settings: Settings):
        self._db = db
        self._settings = settings
        self._col = db[settings.users_collection]

    async def load_user_by_id(self, user_id: str) -> UserRecord | None:
        oid = _oid(user_id)
        if oid is None:
            log.info("repo.user.load_by_id invalid_id user_id=%s", user_id)
            return None
        doc = await self._col.find_one({"_id": oid}, projection={"password": 0})
        return user_from_document(doc) if doc else None

    async def load_user_by_email(self, email: str) -> UserRecord | None:
        doc = await self._col.find_one(
            {"email": email.strip().lower()}, projection={"password": 0}
        )
        return user_from_document(doc) if doc else None

    async def add_role(self, user_id: str, assignment: RoleAssignment) -> UserRecord:
        """
        Append an active assignment. A user holds at most one active role per
        company, and each global role at most once.
        """
        oid = self._require_oid(user_id)
        if assignment.kind is RoleKind.COMPANY:
            clash = {"roleType": "company", "companyId": _oid(assignment.company_id), "isActive": True}
        else:
            clash = {"roleType": "global", "role": assignment.role.value, "isActive": True}

        res = await self._col.update_one(
            {"_id": oid, "roles": {"$not": {"$elemMatch": clash}}},
            {"$push": {"roles": role_to_document(assignment)}},
        )
        if res.matched_count == 0:
            await self._require_user(oid)
            log.info(
                "repo.user.add_role conflict user_id=%s kind=%s company_id=%s",
                user_id,
                assignment.kind.value,
                assignment.company_id,
            )
            raise ConflictError("user already holds an active role there")

        if assignment.kind is RoleKind.COMPANY:
            # First company role becomes the primary company.
            await self._col.update_one(
                {"_id": oid, "primaryCompanyId": None},
                {"$set": {"primaryCompanyId": _oid(assignment.company_id)}},
            )
        log.info(
            "repo.user.add_role user_id=%s kind=%s role=%s company_id=%s",
            user_id,
            assignment.kind.value,
            assignment.role.value,
            assignment.company_id,
        )
        return await self._require_user(oid)

    async def deactivate_role(
        self,
        user_id: str,
        kind: RoleKind,
        role: GlobalRole | CompanyRole,
        company_id: str | None,
    ) -> UserRecord:
        """Flip matching active assignments to inactive. Assignments are never removed."""
        oid = self._require_oid(user_id)
        match: dict[str, Any] = {
            "r.roleType": kind.value,
            "r.role": role.value,
            "r.isActive": True,
        }
        if kind is RoleKind.COMPANY:
            match["r.companyId"] = _oid(company_id)
        res = await self._col.update_one(
            {"_id": oid},
            {"$set": {"roles.$[r].isActive": False}},
            array_filters=[match],
        )
        if res.matched_count == 0:
            raise NotFoundError("user not found")
        if res.modified_count == 0:
            raise NotFoundError("no active role assignment matches")
        log.info(
            "repo.user.deactivate_role user_id=%s kind=%s role=%s company_id=%s",
            user_id,
            kind.value,
            role.value,
            company_id,
        )
        return await self._require_user(oid)

    async def set_status(self, user_id: str, status: UserStatus, reason: str | None = None) -> UserRecord:
        oid = self._require_oid(user_id)
        now = utc_now()
        update: dict[str, Any] = {"status": status.value, "updatedAt": now}
        if status is UserStatus.ACTIVE:
            update.update({"deactivatedReason": None, "deactivatedAt": None})
        else:
            update.update({"deactivatedReason": reason or "manual", "deactivatedAt": now})
        res = await self._col.update_one({"_id": oid}, {"$set": update})
        if res.matched_count == 0:
            raise NotFoundError("user not found")
        log.info("repo.user.set_status user_id=%s status=%s", user_id, status.value)
        return await self._require_user(oid)

    async def load_password_hash(self, user_id: str) -> str | None:
        oid = _oid(user_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid}, projection={"password": 1})
        return (doc or {}).get("password")

    async def record_login(self, user_id: str) -> None:
        oid = self._require_oid(user_id)
        await self._col.update_one(
            {"_id": oid},
            {"$set": {"lastLogin": utc_now()}, "$inc": {"loginCount": 1}},
        )

    def _require_oid(self, user_id: str) -> ObjectId:
        oid = _oid(user_id)
        if oid is None:
            raise NotFoundError("user not found")
        return oid

    async def _require_user(self, oid: ObjectId) -> UserRecord:
        doc = await self._col.find_one({"_id": oid}, projection={"password": 0})
        if not doc:
            raise NotFoundError("user not found")
        return user_from_document(doc)
