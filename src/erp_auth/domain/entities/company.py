from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator


class CompanyStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class SuspensionReason(str, Enum):
    PAYMENT_FAILED = "payment_failed"
    MANUAL_ADMIN = "manual_admin"
    POLICY_VIOLATION = "policy_violation"
    USER_REQUEST = "user_request"
    SUBSCRIPTION_ENDED = "subscription_ended"


class CompanyRecord(BaseModel):
    """
    Company as loaded from the company store.

    `plan` is always the plan identifier. Stores never hand out a populated
    plan document here.
    """

    id: str
    name: str = ""
    status: CompanyStatus = CompanyStatus.TRIAL
    plan: str | None = None
    suspension_reason: SuspensionReason | None = None
    suspended_at: datetime | None = None
    suspended_by: str | None = None

    @field_validator("plan", "suspended_by", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return str(v)

    @property
    def is_suspended(self) -> bool:
        return self.status is CompanyStatus.SUSPENDED
