from __future__ import annotations

from enum import Enum
from typing import Any


class AppError(Exception):
    """Base error for expected failures."""

    def __init__(self, message: str, *, http_status: int = 400):
        super().__init__(message)
        self.message = message
        self.http_status = http_status


class NotFoundError(AppError):
    def __init__(self, message: str = "not found"):
        super().__init__(message, http_status=404)


class ValidationError(AppError):
    def __init__(self, message: str = "invalid request"):
        super().__init__(message, http_status=400)


class ConflictError(AppError):
    def __init__(self, message: str = "conflict"):
        super().__init__(message, http_status=409)


class SessionCacheError(Exception):
    """A cached session could not be decoded. Never a reason to cache anything."""


class AuthErrorCode(str, Enum):
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_NOT_CONFIRMED = "USER_NOT_CONFIRMED"
    USER_INACTIVE = "USER_INACTIVE"

    COMPANY_REQUIRED = "COMPANY_REQUIRED"
    INVALID_COMPANY_ID = "INVALID_COMPANY_ID"
    COMPANY_NOT_FOUND = "COMPANY_NOT_FOUND"
    COMPANY_SUSPENDED = "COMPANY_SUSPENDED"
    COMPANY_ACCESS_DENIED = "COMPANY_ACCESS_DENIED"

    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"


class AuthError(AppError):
    """
    Expected authentication/authorization failure.

    Every resolver in `erp_auth.auth` signals its typed failure by raising a
    subclass of this error. `code` is stable and safe to expose; `details` must
    only ever describe the caller's own request.
    """

    code: AuthErrorCode = AuthErrorCode.TOKEN_INVALID
    status: int = 401
    default_message: str = "unauthorized"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        super().__init__(message or self.default_message, http_status=self.status)
        self.details = details or {}


# Credential errors


class TokenMissing(AuthError):
    code = AuthErrorCode.TOKEN_MISSING
    status = 401
    default_message = "access token required"


class TokenInvalid(AuthError):
    code = AuthErrorCode.TOKEN_INVALID
    status = 401
    default_message = "invalid token"


class TokenExpired(AuthError):
    code = AuthErrorCode.TOKEN_EXPIRED
    status = 401
    default_message = "token has expired"


class InvalidCredentials(AuthError):
    code = AuthErrorCode.INVALID_CREDENTIALS
    status = 401
    default_message = "invalid email or password"


# Identity errors


class UserNotFound(AuthError):
    code = AuthErrorCode.USER_NOT_FOUND
    status = 404
    default_message = "user not found"


class UserNotConfirmed(AuthError):
    code = AuthErrorCode.USER_NOT_CONFIRMED
    status = 403
    default_message = "account not confirmed"


class UserInactive(AuthError):
    code = AuthErrorCode.USER_INACTIVE
    status = 403
    default_message = "account inactive or suspended"


# Tenant errors


class CompanyRequired(AuthError):
    code = AuthErrorCode.COMPANY_REQUIRED
    status = 400
    default_message = "company id required"


class InvalidCompanyId(AuthError):
    code = AuthErrorCode.INVALID_COMPANY_ID
    status = 400
    default_message = "invalid company id"


class CompanyNotFound(AuthError):
    code = AuthErrorCode.COMPANY_NOT_FOUND
    status = 404
    default_message = "company not found"


class CompanySuspended(AuthError):
    code = AuthErrorCode.COMPANY_SUSPENDED
    status = 403
    default_message = "company is suspended"

    def __init__(self, reason: str | None = None, suspended_at: str | None = None):
        super().__init__(details={"reason": reason or "unspecified", "suspended_at": suspended_at})
        self.reason = reason
        self.suspended_at = suspended_at


class CompanyAccessDenied(AuthError):
    code = AuthErrorCode.COMPANY_ACCESS_DENIED
    status = 403
    default_message = "no access to this company"


class InsufficientPermissions(AuthError):
    code = AuthErrorCode.INSUFFICIENT_PERMISSIONS
    status = 403
    default_message = "insufficient permissions"

    def __init__(self, permission: str):
        super().__init__(details={"required_permission": permission})
        self.permission = permission
