from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from erp_auth.auth.roles import CompanyRole, GlobalRole, RoleKind
from erp_auth.domain.entities.company import CompanyStatus, SuspensionReason
from erp_auth.domain.entities.user import UserStatus
from erp_auth.repositories.company_repository import company_from_document
from erp_auth.repositories.user_repository import role_to_document, user_from_document

from fakes import company_role


def test_user_document_maps_to_record() -> None:
    user_id, company_id, assigner = ObjectId(), ObjectId(), ObjectId()
    assigned_at = datetime(2024, 1, 2, tzinfo=timezone.utc)
    doc = {
        "_id": user_id,
        "name": "Ana",
        "email": "ana@example.com",
        "status": "active",
        "confirmed": True,
        "primaryCompanyId": company_id,
        "roles": [
            {"roleType": "global", "role": "superadmin", "companyId": None, "permissions": [], "isActive": False},
            {
                "roleType": "company",
                "role": "admin_empresa",
                "companyId": company_id,
                "permissions": ["reports.export"],
                "isActive": True,
                "assignedAt": assigned_at,
                "assignedBy": assigner,
            },
        ],
    }

    user = user_from_document(doc)

    assert user.id == str(user_id)
    assert user.status is UserStatus.ACTIVE
    assert user.primary_company_id == str(company_id)
    first, second = user.role_assignments
    assert first.kind is RoleKind.GLOBAL and first.role is GlobalRole.SUPER_ADMIN and not first.is_active
    assert second.role is CompanyRole.ADMIN_COMPANY
    assert second.company_id == str(company_id)
    assert second.extra_permissions == frozenset({"reports.export"})
    assert second.assigned_by == str(assigner)


def test_sparse_user_document_defaults() -> None:
    user = user_from_document({"_id": ObjectId(), "email": "x@example.com"})

    assert user.status is UserStatus.PENDING
    assert user.confirmed is False
    assert user.role_assignments == ()
    assert user.primary_company_id is None


def test_unknown_stored_role_is_rejected() -> None:
    doc = {
        "_id": ObjectId(),
        "email": "x@example.com",
        "roles": [{"roleType": "company", "role": "owner", "companyId": ObjectId()}],
    }
    with pytest.raises(ValidationError):
        user_from_document(doc)


def test_role_document_stores_object_ids() -> None:
    company_id = str(ObjectId())

    doc = role_to_document(company_role("manager", company_id, extra=["sales.delete"]))

    assert doc["roleType"] == "company"
    assert doc["role"] == "manager"
    assert doc["companyId"] == ObjectId(company_id)
    assert doc["permissions"] == ["sales.delete"]
    assert doc["isActive"] is True
    assert doc["assignedAt"] is not None


def test_company_document_keeps_plan_as_id() -> None:
    plan_id, suspended_by = ObjectId(), ObjectId()
    doc = {
        "_id": ObjectId(),
        "name": "Acme",
        "status": "suspended",
        "plan": plan_id,
        "suspensionReason": "payment_failed",
        "suspendedAt": datetime(2024, 5, 1, tzinfo=timezone.utc),
        "suspendedBy": suspended_by,
    }

    company = company_from_document(doc)

    assert company.plan == str(plan_id)
    assert company.status is CompanyStatus.SUSPENDED
    assert company.is_suspended
    assert company.suspension_reason is SuspensionReason.PAYMENT_FAILED
    assert company.suspended_by == str(suspended_by)
