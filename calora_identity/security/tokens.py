"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

from datetime import datetime, timezone
import time
from typing import Any
import uuid

import jwt

from ..config import Settings
from ..domain.errors import ConfigurationError

ALGORITHM = "HS256"
DEFAULT_TTL_MINUTES = 60


def issue_access_token(
    *,
    subject: str,
    email: str,
    secret_key: str,
    issuer: str,
    audience: str,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
) -> tuple[str, datetime]:
    """Create a signed JWT asserting the identity of an account.

    Parameters
    ----------
    subject:
        Account identifier to embed in the token `sub` claim.
    email:
        Canonical email of the account.
    secret_key:
        Symmetric HMAC-SHA-256 signing key. Must not be empty.
    issuer, audience:
        Values for the `iss` and `aud` claims; verifiers must expect the same.
    ttl_minutes:
        Token lifetime counted from now.

    Returns
    -------
    tuple[str, datetime]
        The encoded JWT and its expiration instant (identical to the `exp` claim).
    """

    if not secret_key:
        raise ConfigurationError("JWT secret key is not configured")

    now = int(time.time())
    expires_at = now + ttl_minutes * 60
    payload: dict[str, Any] = {
        "iss": issuer,
        "aud": audience,
        "sub": subject,
        "email": email,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": expires_at,
    }

    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    return token, datetime.fromtimestamp(expires_at, tz=timezone.utc)


def decode_access_token(
    token: str,
    *,
    secret_key: str,
    issuer: str,
    audience: str,
) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is malformed, expired, tampered with, or issued
        for another issuer or audience.
    """

    return jwt.decode(
        token,
        secret_key,
        algorithms=[ALGORITHM],
        audience=audience,
        issuer=issuer,
        options={"require": ["exp", "iat", "sub", "jti"]},
    )


class TokenIssuer:
    """Binds the signing key and claim policy from settings to token operations."""

    def __init__(self, settings: Settings) -> None:
        if not settings.jwt_secret or not settings.jwt_secret.strip():
            raise ConfigurationError("JWT_SECRET must be set to issue access tokens")
        if settings.jwt_expiration_minutes < 0:
            raise ConfigurationError("JWT_EXPIRATION_MINUTES must not be negative")
        self._secret_key = settings.jwt_secret
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._ttl_minutes = settings.jwt_expiration_minutes or DEFAULT_TTL_MINUTES

    @property
    def ttl_minutes(self) -> int:
        return self._ttl_minutes

    def issue(self, account_id: str, email: str) -> tuple[str, datetime]:
        return issue_access_token(
            subject=account_id,
            email=email,
            secret_key=self._secret_key,
            issuer=self._issuer,
            audience=self._audience,
            ttl_minutes=self._ttl_minutes,
        )

    def decode(self, token: str) -> dict[str, Any]:
        return decode_access_token(
            token,
            secret_key=self._secret_key,
            issuer=self._issuer,
            audience=self._audience,
        )
