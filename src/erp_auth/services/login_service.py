from __future__ import annotations

import time

import bcrypt

from erp_auth.auth.jwt import Clock, create_access_token
from erp_auth.auth.principal_resolver import validate_user_status
from erp_auth.configs.logging_config import get_logger
from erp_auth.configs.settings import Settings
from erp_auth.domain.entities.access import LoginRequest
from erp_auth.domain.entities.user import UserRecord
from erp_auth.errors import InvalidCredentials
from erp_auth.repositories.stores import CredentialStore

log = get_logger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        log.warning("auth.login.malformed_password_hash")
        return False


class LoginService:
    """
    Email/password sign-in that issues an access token.

    Unknown email and wrong password fail identically. Account status is only
    reported once the password has been verified.
    """

    def __init__(self, users: CredentialStore, settings: Settings, clock: Clock = time.time):
        self._users = users
        self._settings = settings
        self._clock = clock

    async def login(self, req: LoginRequest) -> tuple[str, UserRecord]:
        email = req.email.strip().lower()
        user = await self._users.load_user_by_email(email)
        if user is None:
            log.info("auth.login.failed reason=unknown_email")
            raise InvalidCredentials()

        if not check_password(req.password, await self._users.load_password_hash(user.id)):
            log.info("auth.login.failed reason=bad_password user_id=%s", user.id)
            raise InvalidCredentials()

        validate_user_status(user, self._settings)

        token = create_access_token(user.id, self._settings, now=self._clock())
        await self._users.record_login(user.id)
        log.info("auth.login user_id=%s", user.id)
        return token, user
