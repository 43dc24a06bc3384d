import datetime as dt
import os
import pathlib
import sys
import tempfile
import uuid
from dataclasses import dataclass, field

import jwt
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

# The application module configures logging and the rate limiter on import.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="restohub-logs-"))

from restohub.app_logging import init_logging  # noqa: E402
from restohub.core.auth import reset_auth_settings_cache  # noqa: E402
from restohub.core.db import get_db_session, reset_session_factory  # noqa: E402
from restohub.models import (  # noqa: E402
    Base,
    Booking,
    RestaurantTable,
    Tenant,
    TenantMembership,
)
from restohub.models.session import get_engine  # noqa: E402

JWT_SECRET = "test-secret"
JWT_AUDIENCE = "authenticated"


def issue_token(
    sub: str | None = "operator-user",
    *,
    secret: str = JWT_SECRET,
    audience: str = JWT_AUDIENCE,
    expires_in: int = 300,
    **extra_claims: object,
) -> str:
    """Sign a token shaped like the ones issued by the auth service."""

    payload: dict[str, object] = {
        "aud": audience,
        "exp": dt.datetime.now(dt.timezone.utc) + dt.timedelta(seconds=expires_in),
        "iat": dt.datetime.now(dt.timezone.utc),
        "role": "authenticated",
    }
    if sub is not None:
        payload["sub"] = sub
    payload.update(extra_claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def booking_day(days_ahead: int = 2) -> dt.date:
    return (dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=days_ahead)).date()


def at(day: dt.date, hour: int, minute: int = 0) -> str:
    """ISO-8601 UTC timestamp for ``hour:minute`` on ``day``."""

    return f"{day.isoformat()}T{hour:02d}:{minute:02d}:00Z"


@dataclass
class Restaurant:
    session_factory: sessionmaker[Session]
    tenant_id: uuid.UUID
    other_tenant_id: uuid.UUID
    tables: dict[str, uuid.UUID]
    other_table_id: uuid.UUID
    users: dict[str, str] = field(default_factory=dict)

    def header(self, role: str = "operator", **extra: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {issue_token(self.users[role])}"}
        headers.update(extra)
        return headers

    def add_booking(self, **fields: object) -> uuid.UUID:
        """Insert a booking row directly, bypassing the API checks."""

        start = fields.pop("booking_time")
        duration = fields.pop("duration_minutes", 90)
        values: dict[str, object] = {
            "tenant_id": self.tenant_id,
            "table_id": self.tables["T1"],
            "guest_name": "Walk In",
            "party_size": 2,
            "booking_time": start,
            "duration_minutes": duration,
            "ends_at": start + dt.timedelta(minutes=duration),
            "status": "confirmed",
        }
        values.update(fields)
        with self.session_factory.begin() as session:
            booking = Booking(**values)
            session.add(booking)
            session.flush()
            return booking.id

    def count_bookings(self) -> int:
        with self.session_factory() as session:
            return session.query(Booking).count()


@pytest.fixture
def auth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("AUTH_JWT_AUDIENCE", JWT_AUDIENCE)
    monkeypatch.delenv("AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("DEMO_TENANT_SLUG", raising=False)
    reset_auth_settings_cache()
    yield
    reset_auth_settings_cache()


@pytest.fixture
def session_factory(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> sessionmaker[Session]:
    db_url = f"sqlite+pysqlite:///{tmp_path / 'restohub.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    reset_session_factory()

    engine = get_engine(db_url)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()
    reset_session_factory()


@pytest.fixture
def restaurant(auth_env: None, session_factory: sessionmaker[Session]) -> Restaurant:
    users = {
        "viewer": "viewer-user",
        "operator": "operator-user",
        "admin": "admin-user",
        "outsider": "outsider-user",
    }
    with session_factory.begin() as session:
        tenant = Tenant(name="Trattoria", slug="trattoria")
        other = Tenant(name="Bistro", slug="bistro")
        session.add_all([tenant, other])
        session.flush()

        tables = {
            "T1": RestaurantTable(tenant_id=tenant.id, name="T1", section="Main", capacity=4),
            "T2": RestaurantTable(tenant_id=tenant.id, name="T2", section="Patio", capacity=2),
        }
        other_table = RestaurantTable(tenant_id=other.id, name="B1", section="Bar")
        session.add_all([*tables.values(), other_table])

        for role in ("viewer", "operator", "admin"):
            session.add(
                TenantMembership(tenant_id=tenant.id, user_id=users[role], role=role)
            )
        session.add(
            TenantMembership(tenant_id=other.id, user_id=users["outsider"], role="operator")
        )
        session.flush()

        return Restaurant(
            session_factory=session_factory,
            tenant_id=tenant.id,
            other_tenant_id=other.id,
            tables={name: table.id for name, table in tables.items()},
            other_table_id=other_table.id,
            users=users,
        )


@pytest.fixture
def client(session_factory: sessionmaker[Session]) -> TestClient:
    from restohub.main import app

    def _session_override():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = _session_override
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        @app.get("/api/health")
        async def health():
            return {"status": "ok"}

        init_logging(app)
        return app

    return _create_app
