"""Database helpers for request-scoped, tenant-aware SQLAlchemy sessions."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from uuid import UUID

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, SessionTransaction, sessionmaker

from ..models.session import get_sessionmaker

logger = logging.getLogger(__name__)

_SESSION_FACTORY: sessionmaker[Session] | None = None
_SET_TENANT = text("SELECT set_config('app.tenant_id', :tenant_id, true)")


def _set_tenant_on_begin(
    session: Session, _transaction: SessionTransaction, connection: Connection
) -> None:
    tenant_id = session.info.get("tenant_id")
    if tenant_id is None or connection.dialect.name != "postgresql":
        return
    connection.execute(_SET_TENANT, {"tenant_id": tenant_id})


def _get_session_factory() -> sessionmaker[Session]:
    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        factory = get_sessionmaker(pool_pre_ping=True)
        event.listen(factory, "after_begin", _set_tenant_on_begin)
        _SESSION_FACTORY = factory
    return _SESSION_FACTORY


def reset_session_factory() -> None:
    """Forget the cached session factory; useful in tests when env vars change."""

    global _SESSION_FACTORY
    _SESSION_FACTORY = None


def get_db_session() -> Iterator[Session]:
    """Yield a SQLAlchemy session for request-scoped dependencies."""

    session = _get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def apply_tenant_settings(session: Session, tenant_id: str | UUID) -> None:
    """Expose ``tenant_id`` to Postgres row level security policies.

    The value is stored on ``session.info`` and written with
    ``set_config(..., is_local=true)`` at the start of every transaction the
    session opens, so it survives the commits a service performs mid-request
    and never leaks into the next pooled checkout. Other dialects have no RLS
    and only keep the value on the session.
    """

    tenant_value = str(tenant_id)
    if not tenant_value:
        raise RuntimeError("tenant_id cannot be empty")

    session.info["tenant_id"] = tenant_value
    if not session.in_transaction():
        return
    connection = session.connection()
    if connection.dialect.name != "postgresql":
        return
    try:
        connection.execute(_SET_TENANT, {"tenant_id": tenant_value})
    except Exception:  # pragma: no cover - driver failure
        logger.exception("Failed to apply tenant settings to session")
        raise


__all__ = [
    "apply_tenant_settings",
    "get_db_session",
    "reset_session_factory",
]
