"""Engine and session factories shared by the API and the CLI tools."""

from __future__ import annotations

import os
import uuid
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from . import Base

_PSYCOPG_PREFIXES = ("postgresql://", "postgres://")


def _as_sqlalchemy_url(db_url: str) -> str:
    """Route plain Postgres URLs through the psycopg 3 driver."""

    for prefix in _PSYCOPG_PREFIXES:
        if db_url.startswith(prefix):
            return "postgresql+psycopg://" + db_url[len(prefix):]
    return db_url


def get_engine(database_url: str | None = None, **kwargs: object) -> Engine:
    """Build an engine for ``database_url`` or, failing that, ``DATABASE_URL``.

    Extra keyword arguments go straight to :func:`sqlalchemy.create_engine`.
    SQLite connections get a ``gen_random_uuid`` function and foreign key
    enforcement so the test database behaves like Postgres where it matters.
    """

    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not configured.")

    engine = create_engine(_as_sqlalchemy_url(url), **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):  # pragma: no cover - dialect hook
            dbapi_connection.create_function("gen_random_uuid", 0, lambda: str(uuid.uuid4()))
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    return engine


def get_sessionmaker(database_url: str | None = None, **kwargs: object) -> sessionmaker[Session]:
    engine = get_engine(database_url=database_url, **kwargs)
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


@contextmanager
def session_scope(database_url: str | None = None, **kwargs: object) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""

    with get_sessionmaker(database_url=database_url, **kwargs)() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


__all__ = ["Base", "get_engine", "get_sessionmaker", "session_scope"]
