from __future__ import annotations

import logging

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from restohub.models import Base, RestaurantTable, TenantMembership
from restohub.models.session import get_engine
from tools import bootstrap_demo


def _session_factory() -> sessionmaker:
    engine = get_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def test_ensure_demo_entities_creates_records(caplog):
    factory = _session_factory()
    caplog.set_level(logging.INFO, logger="tools.bootstrap_demo")

    with factory() as session:
        tenant, created_tables, created_tenant = bootstrap_demo.ensure_demo_entities(
            session,
            owner_user_id="owner-sub",
            tenant_name="Demo Trattoria",
            tenant_slug="Demo",
        )
        session.commit()

    assert created_tenant is True
    assert created_tables == len(bootstrap_demo.DEFAULT_TABLES)
    assert tenant.slug == "demo"
    assert tenant.name == "Demo Trattoria"

    with factory() as session:
        sections = set(
            session.execute(
                select(RestaurantTable.section).where(RestaurantTable.tenant_id == tenant.id)
            ).scalars()
        )
        membership = session.execute(
            select(TenantMembership).where(TenantMembership.user_id == "owner-sub")
        ).unique().scalar_one()

    assert sections == {"Patio", "Bar", "Main"}
    assert membership.tenant_id == tenant.id
    assert membership.role == "admin"

    messages = [record.message for record in caplog.records if record.name == "tools.bootstrap_demo"]
    assert any("Created tenant" in message for message in messages)
    assert any("Granted owner-sub" in message for message in messages)


def test_ensure_demo_entities_reuses_existing(caplog):
    factory = _session_factory()

    with factory() as session:
        tenant, _, _ = bootstrap_demo.ensure_demo_entities(session, owner_user_id="owner-sub")
        session.commit()
        existing_id = tenant.id

    caplog.set_level(logging.INFO, logger="tools.bootstrap_demo")
    caplog.clear()

    with factory() as session:
        again, created_tables, created_tenant = bootstrap_demo.ensure_demo_entities(
            session, owner_user_id="owner-sub"
        )
        session.commit()
        table_count = session.query(RestaurantTable).count()

    assert created_tenant is False
    assert created_tables == 0
    assert again.id == existing_id
    assert table_count == len(bootstrap_demo.DEFAULT_TABLES)

    messages = [record.message for record in caplog.records if record.name == "tools.bootstrap_demo"]
    assert any("already exists" in message for message in messages)


def test_main_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(bootstrap_demo, "load_dotenv", lambda: None)

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        bootstrap_demo.main([])


def test_main_bootstraps_sqlite_database(monkeypatch, tmp_path):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'demo.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setattr(bootstrap_demo, "load_dotenv", lambda: None)

    bootstrap_demo.main(["--create-schema", "--slug", "corner-cafe", "--owner", "me"])

    factory = sessionmaker(bind=get_engine(db_url), future=True)
    with factory() as session:
        membership = session.execute(
            select(TenantMembership).where(TenantMembership.user_id == "me")
        ).unique().scalar_one()
        assert membership.tenant.slug == "corner-cafe"
