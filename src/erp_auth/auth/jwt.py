from __future__ import annotations

import hashlib
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from jose import JWTError, jwt

from erp_auth.auth.models import TokenClaims
from erp_auth.configs.logging_config import get_logger
from erp_auth.configs.settings import Settings
from erp_auth.errors import TokenExpired, TokenInvalid, TokenMissing

log = get_logger(__name__)

Clock = Callable[[], float]


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationList:
    """
    Revoked token ids (jti, or the raw-token digest for tokens without one).

    Populated by logout. Entries are kept until the token would have expired
    anyway and are purged lazily.
    """

    def __init__(self, clock: Clock = time.time):
        self._revoked: dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def revoke(self, token_id: str, expires_at: float) -> None:
        now = self._clock()
        with self._lock:
            self._revoked[token_id] = expires_at
            for stale in [k for k, exp in self._revoked.items() if exp <= now]:
                del self._revoked[stale]

    def is_revoked(self, token_id: str | None) -> bool:
        if not token_id:
            return False
        with self._lock:
            return token_id in self._revoked

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)


class TokenVerifier:
    """
    Validates signature, issuer/audience and expiry of bearer tokens.

    Holds no mutable state of its own; the revocation list is read-only here.
    """

    def __init__(self, settings: Settings, revocations: RevocationList, clock: Clock = time.time):
        self._settings = settings
        self._revocations = revocations
        self._clock = clock

    def verify(self, token: str | None) -> TokenClaims:
        if not token:
            raise TokenMissing()

        if self._revocations.is_revoked(token_digest(token)):
            log.info("jwt.verify revoked by digest")
            raise TokenInvalid("token has been revoked")

        claims = self._decode(token)

        if self._revocations.is_revoked(claims.get("jti")):
            log.info("jwt.verify revoked jti=%s", claims.get("jti"))
            raise TokenInvalid("token has been revoked")

        user_id = claims.get("sub") or claims.get("id")
        exp = claims.get("exp")
        if not user_id or exp is None:
            log.info("jwt.verify missing_claims has_sub=%s has_exp=%s", bool(user_id), exp is not None)
            raise TokenInvalid("token missing required claims")

        try:
            exp = float(exp)
            iat = float(claims.get("iat", exp))
        except (TypeError, ValueError) as e:
            raise TokenInvalid("token has malformed timestamps") from e

        if self._clock() >= exp + self._settings.clock_skew_seconds:
            log.info("jwt.verify expired sub=%s", user_id)
            raise TokenExpired()

        return TokenClaims(
            user_id=str(user_id),
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            token_id=claims.get("jti"),
        )

    def _decode(self, token: str) -> dict[str, Any]:
        settings = self._settings
        options = {
            "verify_aud": settings.jwt_audience is not None,
            "verify_iss": settings.jwt_issuer is not None,
            # Expiry is checked against our own clock in `verify`.
            "verify_exp": False,
            "verify_nbf": False,
            "verify_iat": False,
        }
        try:
            return jwt.decode(
                token,
                settings.jwt_secret,
                algorithms=[settings.jwt_alg],
                audience=settings.jwt_audience,
                issuer=settings.jwt_issuer,
                options=options,
            )
        except JWTError as e:
            log.info("JWT decode failed: %s", str(e))
            raise TokenInvalid() from e


def create_access_token(
    user_id: str,
    settings: Settings,
    *,
    expires_in: int | None = None,
    now: float | None = None,
    with_jti: bool = True,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Issue a signed, expiring access token carrying `user_id`."""
    issued = int(now if now is not None else time.time())
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "id": str(user_id),
        "iat": issued,
        "exp": issued + (expires_in if expires_in is not None else settings.jwt_expires_seconds),
    }
    if with_jti:
        claims["jti"] = uuid.uuid4().hex
    if settings.jwt_issuer is not None:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience is not None:
        claims["aud"] = settings.jwt_audience
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_alg)


def revoke_token(token: str, claims: TokenClaims, revocations: RevocationList) -> None:
    token_id = claims.token_id or token_digest(token)
    revocations.revoke(token_id, claims.expires_at.timestamp())
    log.info("jwt.revoke sub=%s by_jti=%s", claims.user_id, claims.token_id is not None)
