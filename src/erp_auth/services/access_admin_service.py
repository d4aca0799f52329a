from __future__ import annotations

from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from erp_auth.auth import assignment_policy, permissions
from erp_auth.auth.models import Principal
from erp_auth.auth.principal_resolver import PrincipalResolver
from erp_auth.auth.roles import CompanyRole, GlobalRole, RoleKind, normalize_role
from erp_auth.configs.logging_config import get_logger
from erp_auth.domain.entities.access import GrantRoleRequest, RevokeRoleRequest
from erp_auth.domain.entities.company import CompanyRecord, SuspensionReason
from erp_auth.domain.entities.user import RoleAssignment, UserRecord, UserStatus
from erp_auth.errors import InsufficientPermissions, NotFoundError, ValidationError
from erp_auth.repositories.stores import CompanyAdminStore, UserAdminStore
from erp_auth.utils.time_utils import utc_now

log = get_logger(__name__)


class AccessAdminService:
    """
    Administrative changes to roles and account/company status.

    Every mutation invalidates the affected cached principals before it
    returns, so the next request sees the change.
    """

    def __init__(
        self,
        users: UserAdminStore,
        companies: CompanyAdminStore,
        principals: PrincipalResolver,
    ):
        self._users = users
        self._companies = companies
        self._principals = principals

    async def grant_role(self, assigner: Principal, user_id: str, req: GrantRoleRequest) -> UserRecord:
        role, company_id = self._parse_role(req.kind, req.role, req.company_id)
        self._authorize_assignment(assigner, role, req.kind, company_id)
        self._authorize_extra_permissions(assigner, req.kind, company_id, req.extra_permissions)
        if company_id is not None:
            await self._require_company(company_id)

        try:
            assignment = RoleAssignment(
                kind=req.kind,
                role=role,
                company_id=company_id,
                extra_permissions=req.extra_permissions,
                is_active=True,
                assigned_at=utc_now(),
                assigned_by=assigner.id,
            )
        except PydanticValidationError as e:
            raise ValidationError("invalid role assignment") from e

        user = await self._users.add_role(user_id, assignment)
        await self._principals.invalidate(user_id)
        log.info(
            "access.grant_role assigner_id=%s user_id=%s kind=%s role=%s company_id=%s",
            assigner.id,
            user_id,
            req.kind.value,
            role.value,
            company_id,
        )
        return user

    async def revoke_role(self, revoker: Principal, user_id: str, req: RevokeRoleRequest) -> UserRecord:
        role, company_id = self._parse_role(req.kind, req.role, req.company_id)
        self._authorize_assignment(revoker, role, req.kind, company_id)

        user = await self._users.deactivate_role(user_id, req.kind, role, company_id)
        await self._principals.invalidate(user_id)
        log.info(
            "access.revoke_role revoker_id=%s user_id=%s kind=%s role=%s company_id=%s",
            revoker.id,
            user_id,
            req.kind.value,
            role.value,
            company_id,
        )
        return user

    async def suspend_user(self, actor: Principal, user_id: str, reason: str | None = None) -> UserRecord:
        await self._authorize_user_status(actor, user_id)
        user = await self._users.set_status(user_id, UserStatus.SUSPENDED, reason)
        await self._principals.invalidate(user_id)
        log.info("access.suspend_user actor_id=%s user_id=%s", actor.id, user_id)
        return user

    async def reactivate_user(self, actor: Principal, user_id: str) -> UserRecord:
        await self._authorize_user_status(actor, user_id)
        user = await self._users.set_status(user_id, UserStatus.ACTIVE)
        await self._principals.invalidate(user_id)
        log.info("access.reactivate_user actor_id=%s user_id=%s", actor.id, user_id)
        return user

    async def suspend_company(
        self, actor: Principal, company_id: str, reason: SuspensionReason
    ) -> CompanyRecord:
        company = await self._companies.suspend(company_id, reason, actor.id)
        # Membership of many users changes meaning at once.
        await self._principals.invalidate_all()
        log.info(
            "access.suspend_company actor_id=%s company_id=%s reason=%s",
            actor.id,
            company_id,
            reason.value,
        )
        return company

    async def reactivate_company(self, actor: Principal, company_id: str) -> CompanyRecord:
        company = await self._companies.reactivate(company_id)
        await self._principals.invalidate_all()
        log.info("access.reactivate_company actor_id=%s company_id=%s", actor.id, company_id)
        return company

    @staticmethod
    def _parse_role(
        kind: RoleKind, raw_role: str, company_id: str | None
    ) -> tuple[GlobalRole | CompanyRole, str | None]:
        try:
            role = normalize_role(raw_role, kind)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        company_id = (company_id or "").strip() or None
        if kind is RoleKind.GLOBAL:
            if company_id is not None:
                raise ValidationError("global roles cannot be scoped to a company")
            return role, None
        if company_id is None:
            raise ValidationError("companyId is required for company roles")
        if not ObjectId.is_valid(company_id):
            raise ValidationError("invalid companyId")
        return role, company_id

    @staticmethod
    def _authorize_assignment(
        actor: Principal,
        role: GlobalRole | CompanyRole,
        kind: RoleKind,
        company_id: str | None,
    ) -> None:
        if assignment_policy.can_assign_role(actor, role, kind, company_id):
            return
        required = (
            permissions.GlobalPermission.USERS_ASSIGN_GLOBAL_ROLES
            if kind is RoleKind.GLOBAL
            else permissions.CompanyPermission.USERS_ASSIGN_ROLES
        )
        log.info(
            "access.assignment_denied actor_id=%s kind=%s role=%s company_id=%s",
            actor.id,
            kind.value,
            role.value,
            company_id,
        )
        raise InsufficientPermissions(required.value)

    @staticmethod
    def _authorize_extra_permissions(
        actor: Principal,
        kind: RoleKind,
        company_id: str | None,
        requested: list[str],
    ) -> None:
        denied = assignment_policy.ungrantable_permissions(actor, kind, company_id, requested)
        if not denied:
            return
        log.info(
            "access.extra_permissions_denied actor_id=%s company_id=%s permissions=%s",
            actor.id,
            company_id,
            ",".join(sorted(denied)),
        )
        raise InsufficientPermissions(sorted(denied)[0])

    async def _authorize_user_status(self, actor: Principal, user_id: str) -> None:
        """
        Platform admins may change anyone. A company admin may only change users
        holding an active role in a company where the admin has `users.suspend`,
        and never a user with a global role.
        """
        target = await self._users.load_user_by_id(user_id)
        if target is None:
            raise NotFoundError("user not found")
        if permissions.has_global_permission(actor, permissions.MANAGE_EVERYTHING):
            return

        active = [a for a in target.role_assignments if a.is_active]
        if any(a.kind is RoleKind.GLOBAL for a in active):
            log.info("access.user_status_denied actor_id=%s user_id=%s target=global", actor.id, user_id)
            raise InsufficientPermissions(permissions.MANAGE_EVERYTHING.value)

        member_of = {a.company_id for a in active if a.kind is RoleKind.COMPANY}
        if any(
            permissions.has_company_permission(actor, permissions.CompanyPermission.USERS_SUSPEND, cid)
            for cid in member_of
        ):
            return
        log.info("access.user_status_denied actor_id=%s user_id=%s", actor.id, user_id)
        raise InsufficientPermissions(permissions.CompanyPermission.USERS_SUSPEND.value)

    async def _require_company(self, company_id: str) -> CompanyRecord:
        company = await self._companies.load_company_by_id(company_id)
        if company is None:
            raise NotFoundError("company not found")
        return company
