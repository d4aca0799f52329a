from __future__ import annotations

from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from erp_auth.configs.logging_config import get_logger
from erp_auth.configs.settings import Settings
from erp_auth.domain.entities.company import CompanyRecord, CompanyStatus, SuspensionReason
from erp_auth.errors import NotFoundError
from erp_auth.utils.time_utils import utc_now

log = get_logger(__name__)


def company_from_document(doc: dict[str, Any]) -> CompanyRecord:
    return CompanyRecord(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        status=doc.get("status") or CompanyStatus.TRIAL,
        plan=doc.get("plan"),
        suspension_reason=doc.get("suspensionReason"),
        suspended_at=doc.get("suspendedAt"),
        suspended_by=doc.get("suspendedBy"),
    )


class CompanyRepository:
    """Mongo-backed company store. `plan` is read as the stored plan id, never populated."""

    def __init__(self, db: AsyncIOMotorDatabase, settings: Settings):
        self._db = db
        self._settings = settings
        self._col = db[settings.companies_collection]

    async def load_company_by_id(self, company_id: str) -> CompanyRecord | None:
        if not ObjectId.is_valid(company_id):
            return None
        doc = await self._col.find_one(
            {"_id": ObjectId(company_id)},
            projection={"name": 1, "status": 1, "plan": 1, "suspensionReason": 1, "suspendedAt": 1, "suspendedBy": 1},
        )
        return company_from_document(doc) if doc else None

    async def suspend(self, company_id: str, reason: SuspensionReason, suspended_by: str) -> CompanyRecord:
        log.info("repo.company.suspend company_id=%s reason=%s", company_id, reason.value)
        return await self._update(
            company_id,
            {
                "status": CompanyStatus.SUSPENDED.value,
                "suspendedAt": utc_now(),
                "suspendedBy": ObjectId(suspended_by) if ObjectId.is_valid(suspended_by) else suspended_by,
                "suspensionReason": reason.value,
            },
        )

    async def reactivate(self, company_id: str) -> CompanyRecord:
        log.info("repo.company.reactivate company_id=%s", company_id)
        return await self._update(
            company_id,
            {
                "status": CompanyStatus.ACTIVE.value,
                "suspendedAt": None,
                "suspendedBy": None,
                "suspensionReason": None,
            },
        )

    async def _update(self, company_id: str, fields: dict[str, Any]) -> CompanyRecord:
        if not ObjectId.is_valid(company_id):
            raise NotFoundError("company not found")
        oid = ObjectId(company_id)
        res = await self._col.update_one({"_id": oid}, {"$set": fields})
        if res.matched_count == 0:
            raise NotFoundError("company not found")
        doc = await self._col.find_one({"_id": oid})
        return company_from_document(doc)
