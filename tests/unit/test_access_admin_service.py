from __future__ import annotations

import pytest

from erp_auth.auth import permissions
from erp_auth.auth.principal_resolver import principal_cache_key
from erp_auth.auth.roles import CompanyRole, RoleKind
from erp_auth.auth.tenant_context import CompanyHints
from erp_auth.domain.entities.access import GrantRoleRequest, RevokeRoleRequest
from erp_auth.domain.entities.company import CompanyStatus, SuspensionReason
from erp_auth.domain.entities.user import UserStatus
from erp_auth.errors import (
    CompanySuspended,
    ConflictError,
    InsufficientPermissions,
    NotFoundError,
    UserInactive,
    ValidationError,
)

from fakes import company_role, global_role, make_company, make_user, principal_of


@pytest.fixture
def company(company_store):
    c = make_company()
    company_store.put(c)
    return c


@pytest.mark.asyncio
async def test_grant_invalidates_cached_principal(engine, service, user_store, cache, company) -> None:
    admin = principal_of(company_role("admin_company", company.id))
    target = make_user()
    user_store.put(target)
    before = await engine.principals.resolve(target.id)
    assert not permissions.has_company_permission(before, "sales.create", company.id)

    updated = await service.grant_role(
        admin, target.id, GrantRoleRequest(kind="company", role="employee", companyId=company.id)
    )

    assert await cache.get(principal_cache_key(target.id)) is None
    assert updated.primary_company_id == company.id
    assert updated.role_assignments[-1].assigned_by == admin.id
    after = await engine.principals.resolve(target.id)
    assert permissions.has_company_permission(after, "sales.create", company.id)


@pytest.mark.asyncio
async def test_grant_accepts_legacy_role_name(service, user_store, company) -> None:
    root = principal_of(global_role("super_admin"))
    target = make_user()
    user_store.put(target)

    updated = await service.grant_role(
        root, target.id, GrantRoleRequest(kind="company", role="admin_empresa", company_id=company.id)
    )

    assert updated.role_assignments[-1].role is CompanyRole.ADMIN_COMPANY


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kind, role, with_company",
    [
        ("company", "janitor", True),
        ("company", "manager", False),
        ("global", "super_admin", True),
        ("global", "manager", False),
    ],
)
async def test_grant_rejects_malformed_requests(service, user_store, company, kind, role, with_company) -> None:
    root = principal_of(global_role("super_admin"))
    target = make_user()
    user_store.put(target)

    req = GrantRoleRequest(kind=kind, role=role, company_id=company.id if with_company else None)
    with pytest.raises(ValidationError):
        await service.grant_role(root, target.id, req)


@pytest.mark.asyncio
async def test_grant_beyond_own_authority_is_refused(service, user_store, company) -> None:
    manager = principal_of(company_role("manager", company.id))
    target = make_user()
    user_store.put(target)

    with pytest.raises(InsufficientPermissions) as exc_info:
        await service.grant_role(
            manager, target.id, GrantRoleRequest(kind="company", role="admin_company", company_id=company.id)
        )
    assert exc_info.value.details == {"required_permission": "users.assign_roles"}

    with pytest.raises(InsufficientPermissions):
        await service.grant_role(manager, target.id, GrantRoleRequest(kind=RoleKind.GLOBAL, role="system_admin"))


@pytest.mark.asyncio
async def test_grant_into_unknown_company(service, user_store) -> None:
    root = principal_of(global_role("super_admin"))
    target = make_user()
    user_store.put(target)

    with pytest.raises(NotFoundError):
        await service.grant_role(
            root, target.id, GrantRoleRequest(kind="company", role="viewer", company_id=make_company().id)
        )


@pytest.mark.asyncio
async def test_second_active_role_in_same_company_conflicts(service, user_store, company) -> None:
    root = principal_of(global_role("super_admin"))
    target = make_user(company_role("viewer", company.id))
    user_store.put(target)

    with pytest.raises(ConflictError):
        await service.grant_role(
            root, target.id, GrantRoleRequest(kind="company", role="manager", company_id=company.id)
        )


@pytest.mark.asyncio
async def test_revoke_takes_effect_on_next_request(engine, service, user_store, company) -> None:
    admin = principal_of(company_role("admin_company", company.id))
    target = make_user(company_role("employee", company.id))
    user_store.put(target)
    await engine.principals.resolve(target.id)

    await service.revoke_role(
        admin, target.id, RevokeRoleRequest(kind="company", role="employee", company_id=company.id)
    )

    after = await engine.principals.resolve(target.id)
    assert not permissions.has_company_permission(after, "inventory.view", company.id)
    assert user_store.users[target.id].role_assignments[0].is_active is False


@pytest.mark.asyncio
async def test_revoke_missing_assignment(service, user_store, company) -> None:
    root = principal_of(global_role("super_admin"))
    target = make_user()
    user_store.put(target)

    with pytest.raises(NotFoundError):
        await service.revoke_role(
            root, target.id, RevokeRoleRequest(kind="company", role="viewer", company_id=company.id)
        )


@pytest.mark.asyncio
async def test_company_admin_suspends_member_immediately(engine, service, user_store, company) -> None:
    admin = principal_of(company_role("admin_company", company.id))
    target = make_user(company_role("employee", company.id), primary_company_id=company.id)
    user_store.put(target)
    await engine.principals.resolve(target.id)

    await service.suspend_user(admin, target.id, reason="left the company")

    assert user_store.users[target.id].status is UserStatus.SUSPENDED
    with pytest.raises(UserInactive):
        await engine.principals.resolve(target.id)

    await service.reactivate_user(admin, target.id)
    assert (await engine.principals.resolve(target.id)).status is UserStatus.ACTIVE


@pytest.mark.asyncio
async def test_suspending_someone_elses_member_is_refused(service, user_store, company) -> None:
    outsider = principal_of(company_role("admin_company", make_company().id))
    target = make_user(company_role("employee", company.id), primary_company_id=company.id)
    user_store.put(target)

    with pytest.raises(InsufficientPermissions):
        await service.suspend_user(outsider, target.id)

    with pytest.raises(NotFoundError):
        await service.suspend_user(outsider, make_user().id)


@pytest.mark.asyncio
async def test_company_suspension_drops_every_cached_principal(engine, service, user_store, cache, company) -> None:
    root = principal_of(global_role("super_admin"))
    members = [make_user(company_role("employee", company.id), primary_company_id=company.id) for _ in range(3)]
    for member in members:
        user_store.put(member)
        await engine.principals.resolve(member.id)
    assert cache.size() == 3

    suspended = await service.suspend_company(root, company.id, SuspensionReason.PAYMENT_FAILED)

    assert suspended.status is CompanyStatus.SUSPENDED
    assert cache.size() == 0
    member = await engine.principals.resolve(members[0].id)
    with pytest.raises(CompanySuspended) as exc_info:
        await engine.tenants.resolve_context(member, CompanyHints())
    assert exc_info.value.details["reason"] == "payment_failed"

    await service.reactivate_company(root, company.id)
    ctx = await engine.tenants.resolve_context(member, CompanyHints())
    assert ctx.company.status is CompanyStatus.ACTIVE


@pytest.mark.asyncio
async def test_grantor_cannot_hand_out_permissions_they_lack(engine, service, user_store, company) -> None:
    manager = principal_of(company_role("manager", company.id))
    target = make_user()
    user_store.put(target)

    with pytest.raises(InsufficientPermissions) as exc_info:
        await service.grant_role(
            manager,
            target.id,
            GrantRoleRequest(
                kind="company",
                role="viewer",
                companyId=company.id,
                extraPermissions=["users.delete", "company.billing", "users.suspend"],
            ),
        )

    assert exc_info.value.details["required_permission"] == "company.billing"
    assert user_store.users[target.id].role_assignments == ()
    viewer = await engine.principals.resolve(target.id)
    assert permissions.company_permissions(viewer, company.id) == frozenset()


@pytest.mark.asyncio
async def test_grantor_may_pass_on_permissions_they_hold(engine, service, user_store, company) -> None:
    manager = principal_of(company_role("manager", company.id))
    target = make_user()
    user_store.put(target)

    await service.grant_role(
        manager,
        target.id,
        GrantRoleRequest(kind="company", role="viewer", companyId=company.id, extraPermissions=["reports.export"]),
    )

    viewer = await engine.principals.resolve(target.id)
    assert permissions.has_company_permission(viewer, "reports.export", company.id)
    assert permissions.company_permissions(viewer, company.id) <= permissions.company_permissions(
        manager, company.id
    )


@pytest.mark.asyncio
async def test_super_admin_grants_any_extra_permission(service, user_store, company) -> None:
    root = principal_of(global_role("super_admin"))
    target = make_user()
    user_store.put(target)

    updated = await service.grant_role(
        root,
        target.id,
        GrantRoleRequest(kind="company", role="viewer", companyId=company.id, extraPermissions=["users.delete"]),
    )

    assert updated.role_assignments[-1].extra_permissions == frozenset({"users.delete"})


@pytest.mark.asyncio
async def test_company_admin_cannot_touch_global_role_holders(service, user_store, company) -> None:
    admin = principal_of(company_role("admin_company", company.id))
    root = make_user(
        global_role("super_admin"),
        company_role("admin_company", company.id),
        primary_company_id=company.id,
    )
    user_store.put(root)

    with pytest.raises(InsufficientPermissions) as exc_info:
        await service.suspend_user(admin, root.id)
    assert exc_info.value.details["required_permission"] == "users.manage_global"

    with pytest.raises(InsufficientPermissions):
        await service.reactivate_user(admin, root.id)
    assert user_store.users[root.id].status is UserStatus.ACTIVE


@pytest.mark.asyncio
async def test_company_admin_needs_target_to_be_an_active_member(service, user_store, company) -> None:
    admin = principal_of(company_role("admin_company", company.id))
    former = make_user(company_role("employee", company.id, active=False), primary_company_id=company.id)
    user_store.put(former)

    with pytest.raises(InsufficientPermissions):
        await service.suspend_user(admin, former.id)
    assert user_store.users[former.id].status is UserStatus.ACTIVE


@pytest.mark.asyncio
async def test_platform_admin_can_suspend_global_role_holder(engine, service, user_store) -> None:
    root = principal_of(global_role("super_admin"))
    sysadmin = make_user(global_role("system_admin"))
    user_store.put(sysadmin)

    await service.suspend_user(root, sysadmin.id, reason="rotation")

    with pytest.raises(UserInactive):
        await engine.principals.resolve(sysadmin.id)
