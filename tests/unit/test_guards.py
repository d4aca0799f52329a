from __future__ import annotations

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from erp_auth.auth.dependencies import (
    require_company_context,
    require_company_permission,
    require_global_permission,
)
from erp_auth.auth.jwt import create_access_token
from erp_auth.auth.permissions import CompanyPermission, GlobalPermission
from erp_auth.main import create_app

from fakes import company_role, global_role, make_company, make_user


@pytest.fixture
def client(settings, engine, service):
    app = create_app(settings, engine=engine, access_service=service)

    @app.delete("/inventory/{companyId}/items")
    async def delete_items(ctx=Depends(require_company_permission(CompanyPermission.INVENTORY_DELETE))):
        return {"company": ctx.company.id if ctx.company else None}

    @app.post("/sales")
    async def create_sale(ctx=Depends(require_company_permission("sales.create"))):
        return {"company": ctx.company.id if ctx.company else None}

    @app.get("/scoped")
    async def scoped(ctx=Depends(require_company_context())):
        return {"company": ctx.company.id}

    @app.get("/system/logs")
    async def system_logs(principal=Depends(require_global_permission(GlobalPermission.SYSTEM_LOGS))):
        return {"user": principal.id}

    with TestClient(app) as c:
        yield c


@pytest.fixture
def company(company_store):
    c = make_company()
    company_store.put(c)
    return c


@pytest.fixture
def auth(settings, clock, user_store):
    def _auth(user) -> dict[str, str]:
        user_store.put(user)
        return {"Authorization": f"Bearer {create_access_token(user.id, settings, now=clock())}"}

    return _auth


def test_company_permission_guard(client, auth, company) -> None:
    employee = auth(make_user(company_role("employee", company.id)))
    admin = auth(make_user(company_role("admin_company", company.id)))

    res = client.delete(f"/inventory/{company.id}/items", headers=employee)
    assert res.status_code == 403
    assert res.json()["details"] == {"required_permission": "inventory.delete"}

    res = client.delete(f"/inventory/{company.id}/items", headers=admin)
    assert res.status_code == 200
    assert res.json() == {"company": company.id}


def test_company_id_from_json_body(client, auth, company) -> None:
    headers = auth(make_user(company_role("employee", company.id)))

    res = client.post("/sales", json={"companyId": company.id, "total": 10}, headers=headers)

    assert res.status_code == 200
    assert res.json() == {"company": company.id}


def test_cross_tenant_caller_needs_manage_everything(client, auth) -> None:
    root = auth(make_user(global_role("super_admin")))
    lister = auth(make_user(global_role("system_admin", extra=["companies.list_all"])))

    res = client.post("/sales", json={"total": 10}, headers=root)
    assert res.status_code == 200
    assert res.json() == {"company": None}

    res = client.post("/sales", json={"total": 10}, headers=lister)
    assert res.status_code == 400
    assert res.json()["code"] == "COMPANY_REQUIRED"


def test_company_context_guard_rejects_cross_tenant(client, auth) -> None:
    root = auth(make_user(global_role("super_admin")))

    res = client.get("/scoped", headers=root)

    assert res.status_code == 400
    assert res.json()["code"] == "COMPANY_REQUIRED"


def test_global_permission_guard(client, auth) -> None:
    sysadmin = auth(make_user(global_role("system_admin")))
    admin = auth(make_user(company_role("admin_company", make_company().id)))

    assert client.get("/system/logs", headers=sysadmin).status_code == 200
    res = client.get("/system/logs", headers=admin)
    assert res.status_code == 403
    assert res.json()["code"] == "INSUFFICIENT_PERMISSIONS"
