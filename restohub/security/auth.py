"""Bearer-token authentication and tenant resolution for FastAPI routers."""

from __future__ import annotations

import dataclasses
import logging
import os
import uuid
from typing import Callable

from fastapi import Depends, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from restohub import errors
from restohub.core.auth import (
    AccessTokenPayload,
    AuthConfigurationError,
    AuthTokenError,
    decode_access_token,
)
from restohub.core.db import apply_tenant_settings, get_db_session
from restohub.models import Tenant, TenantMembership

logger = logging.getLogger(__name__)

_ROLE_LEVELS = {"viewer": 0, "operator": 1, "admin": 2}


@dataclasses.dataclass(frozen=True)
class TenantContext:
    """The authenticated user and the tenant it is acting for."""

    tenant_id: uuid.UUID
    user_id: str
    role: str
    tenant: Tenant


async def get_current_token_payload(request: Request) -> AccessTokenPayload:
    """Decode and validate the bearer token from ``request``."""

    authorization = request.headers.get("Authorization")
    if not authorization:
        raise errors.AuthError(
            "Authorization header required", code=errors.AUTH_REQUIRED
        )

    scheme, _, credentials = authorization.partition(" ")
    credentials = credentials.strip()
    if not credentials or scheme.lower() != "bearer":
        raise errors.AuthError("Authorization header must use Bearer scheme.")

    try:
        return decode_access_token(credentials)
    except AuthConfigurationError as exc:
        logger.error("Token validation is not configured: %s", exc)
        raise errors.ApiError(
            "Server configuration error",
            code=errors.INTERNAL_ERROR,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from exc
    except AuthTokenError as exc:
        raise errors.AuthError(str(exc)) from exc


def _parse_tenant_header(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise errors.ValidationError("X-Tenant-Id must be a UUID") from exc


def _find_membership(
    session: Session, user_id: str, tenant_id: uuid.UUID | None
) -> TenantMembership | None:
    stmt = (
        select(TenantMembership)
        .join(Tenant, Tenant.id == TenantMembership.tenant_id)
        .where(TenantMembership.user_id == user_id)
        .where(TenantMembership.active.is_(True))
        .where(Tenant.status == "active")
        .order_by(TenantMembership.created_at)
    )
    if tenant_id is not None:
        stmt = stmt.where(TenantMembership.tenant_id == tenant_id)
    return session.execute(stmt.limit(1)).unique().scalar_one_or_none()


def _demo_tenant(session: Session) -> Tenant | None:
    slug = os.getenv("DEMO_TENANT_SLUG")
    if not slug:
        return None
    return session.execute(
        select(Tenant).where(Tenant.slug == slug).where(Tenant.status == "active")
    ).scalar_one_or_none()


async def get_tenant_context(
    request: Request,
    payload: AccessTokenPayload = Depends(get_current_token_payload),
    session: Session = Depends(get_db_session),
) -> TenantContext:
    """Resolve the tenant of the authenticated user.

    Active memberships are consulted first (optionally narrowed by the
    ``X-Tenant-Id`` header); when none exists and ``DEMO_TENANT_SLUG`` is set,
    the user is attached to that demo tenant with ``DEMO_TENANT_ROLE``.
    """

    user_id = payload["sub"]
    requested = _parse_tenant_header(request.headers.get("X-Tenant-Id"))

    membership = _find_membership(session, user_id, requested)
    if membership is not None:
        context = TenantContext(
            tenant_id=membership.tenant_id,
            user_id=user_id,
            role=membership.role,
            tenant=membership.tenant,
        )
    else:
        demo = _demo_tenant(session) if requested is None else None
        if demo is None:
            logger.info("No tenant found for user %s", user_id)
            raise errors.ApiError(
                "No tenant found for user",
                code=errors.TENANT_NOT_FOUND,
                status_code=status.HTTP_404_NOT_FOUND,
            )
        context = TenantContext(
            tenant_id=demo.id,
            user_id=user_id,
            role=os.getenv("DEMO_TENANT_ROLE", "operator"),
            tenant=demo,
        )

    apply_tenant_settings(session, context.tenant_id)
    request.state.tenant_id = str(context.tenant_id)
    request.state.user_id = user_id
    return context


def require_role(min_role: str) -> Callable[..., TenantContext]:
    """Create a dependency ensuring the caller has at least ``min_role`` privileges."""

    if min_role not in _ROLE_LEVELS:
        raise ValueError(f"Unknown role: {min_role}")

    async def dependency(
        context: TenantContext = Depends(get_tenant_context),
    ) -> TenantContext:
        level = _ROLE_LEVELS.get(context.role)
        if level is None:
            raise errors.PermissionDeniedError("No roles assigned to user.")
        if level < _ROLE_LEVELS[min_role]:
            raise errors.PermissionDeniedError("Insufficient role.")
        return context

    return dependency


__all__ = [
    "TenantContext",
    "get_current_token_payload",
    "get_tenant_context",
    "require_role",
]
