"""Validation of access tokens issued by the external auth service."""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache
from typing import TypedDict, cast

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

__all__ = [
    "AccessTokenPayload",
    "AuthConfigurationError",
    "AuthSettings",
    "AuthTokenError",
    "decode_access_token",
    "get_auth_settings",
    "reset_auth_settings_cache",
]


class AuthConfigurationError(RuntimeError):
    """Raised when token validation settings are missing."""


class AuthTokenError(ValueError):
    """Raised when the provided access token cannot be validated."""


class _AccessTokenRequiredClaims(TypedDict):
    sub: str


class AccessTokenPayload(_AccessTokenRequiredClaims, total=False):
    """Decoded JWT payload of an authenticated user."""

    aud: str | list[str]
    email: str
    exp: int
    iat: int
    iss: str
    role: str


@dataclasses.dataclass(frozen=True)
class AuthSettings:
    """Runtime configuration for validating access tokens."""

    secret: str
    audience: str = "authenticated"
    issuer: str | None = None
    algorithm: str = "HS256"
    leeway_seconds: int = 0


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """Load settings from the environment.

    Raises:
        AuthConfigurationError: If ``AUTH_JWT_SECRET`` is missing or blank.
    """

    secret = (os.getenv("AUTH_JWT_SECRET") or "").strip()
    if not secret:
        raise AuthConfigurationError(
            "Environment variable 'AUTH_JWT_SECRET' must be set for token validation.",
        )
    issuer = (os.getenv("AUTH_JWT_ISSUER") or "").strip() or None
    return AuthSettings(
        secret=secret,
        audience=os.getenv("AUTH_JWT_AUDIENCE", "authenticated").strip(),
        issuer=issuer,
        algorithm=os.getenv("AUTH_JWT_ALGORITHM", "HS256").strip(),
        leeway_seconds=int(os.getenv("AUTH_JWT_LEEWAY_SECONDS", "0")),
    )


def reset_auth_settings_cache() -> None:
    """Clear cached auth settings; useful in tests when env vars change."""

    get_auth_settings.cache_clear()


def decode_access_token(
    token: str, *, settings: AuthSettings | None = None
) -> AccessTokenPayload:
    """Decode and validate an access token.

    Args:
        token: Encoded JWT taken from the ``Authorization`` header.
        settings: Explicit settings; defaults to :func:`get_auth_settings`.

    Returns:
        AccessTokenPayload: Claims of the authenticated user.

    Raises:
        AuthConfigurationError: If mandatory environment configuration is missing.
        AuthTokenError: If the signature, claims or expiry are invalid.
    """

    settings = settings or get_auth_settings()
    required = ["exp", "aud", "sub"]
    if settings.issuer:
        required.append("iss")

    try:
        payload = jwt.decode(
            token,
            settings.secret,
            algorithms=[settings.algorithm],
            audience=settings.audience,
            issuer=settings.issuer,
            leeway=settings.leeway_seconds,
            options={"require": required},
        )
    except ExpiredSignatureError as exc:
        raise AuthTokenError("Access token has expired.") from exc
    except InvalidTokenError as exc:
        raise AuthTokenError("Access token is invalid.") from exc

    if not str(payload.get("sub") or "").strip():
        raise AuthTokenError("Access token subject is empty.")

    return cast(AccessTokenPayload, payload)
