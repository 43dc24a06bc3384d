"""Utility CLI to bootstrap a demo restaurant, its owner membership and tables."""

from __future__ import annotations

import argparse
import logging
import os

from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from restohub.models import Base, RestaurantTable, Tenant, TenantMembership
from restohub.models.session import get_engine, session_scope

logger = logging.getLogger("tools.bootstrap_demo")

DEFAULT_TENANT_NAME = "Demo Restaurant"
DEFAULT_TENANT_SLUG = "demo"
DEFAULT_OWNER_ROLE = "admin"

# (name, section, capacity)
DEFAULT_TABLES: tuple[tuple[str, str, int], ...] = (
    ("Table 1", "Patio", 2),
    ("Table 2", "Patio", 4),
    ("Table 3", "Patio", 4),
    ("Table 4", "Bar", 2),
    ("Table 5", "Bar", 2),
    ("Table 6", "Main", 4),
    ("Table 7", "Main", 6),
    ("Table 8", "Main", 8),
)


def _safe_url(db_url: str) -> str:
    """Return ``db_url`` with any password redacted for logging."""

    try:
        parsed = make_url(db_url)
    except Exception:  # pragma: no cover - unparsable URL
        return db_url
    if parsed.password is None:
        return db_url
    redacted = parsed.set(password="***")
    return redacted.render_as_string(hide_password=False)


def ensure_demo_entities(
    session: Session,
    *,
    owner_user_id: str | None = None,
    tenant_name: str = DEFAULT_TENANT_NAME,
    tenant_slug: str = DEFAULT_TENANT_SLUG,
    owner_role: str = DEFAULT_OWNER_ROLE,
    tables: tuple[tuple[str, str, int], ...] = DEFAULT_TABLES,
) -> tuple[Tenant, int, bool]:
    """Ensure the demo tenant, its tables and optionally an owner membership exist.

    Args:
        session: Active SQLAlchemy session.
        owner_user_id: Auth subject (``sub`` claim) granted ``owner_role`` in
            the tenant. Skipped when ``None``.
        tenant_name: Display name used when creating the tenant.
        tenant_slug: Unique slug used for lookup/creation.
        owner_role: Role of the owner membership.
        tables: ``(name, section, capacity)`` rows created when the tenant has
            no tables yet.

    Returns:
        Tuple of the tenant, the number of tables created and whether the
        tenant itself was created.
    """

    slug = tenant_slug.strip().lower()
    created_tenant = False

    tenant = session.execute(select(Tenant).where(Tenant.slug == slug)).scalar_one_or_none()
    if tenant is None:
        tenant = Tenant(name=tenant_name.strip(), slug=slug)
        session.add(tenant)
        session.flush()
        created_tenant = True
        logger.info("Created tenant %s (id=%s)", tenant.slug, tenant.id)
    else:
        logger.info("Tenant %s already exists (id=%s)", tenant.slug, tenant.id)

    existing_tables = session.execute(
        select(RestaurantTable.id).where(RestaurantTable.tenant_id == tenant.id).limit(1)
    ).first()
    created_tables = 0
    if existing_tables is None:
        for name, section, capacity in tables:
            session.add(
                RestaurantTable(
                    tenant_id=tenant.id, name=name, section=section, capacity=capacity
                )
            )
            created_tables += 1
        session.flush()
        logger.info("Created %d tables for tenant %s", created_tables, tenant.slug)

    if owner_user_id:
        membership = session.execute(
            select(TenantMembership)
            .where(TenantMembership.tenant_id == tenant.id)
            .where(TenantMembership.user_id == owner_user_id)
        ).unique().scalar_one_or_none()
        if membership is None:
            session.add(
                TenantMembership(
                    tenant_id=tenant.id, user_id=owner_user_id, role=owner_role
                )
            )
            session.flush()
            logger.info("Granted %s role %s in tenant %s", owner_user_id, owner_role, slug)
        else:
            logger.info("Membership for %s already exists", owner_user_id)

    return tenant, created_tables, created_tenant


def main(argv: list[str] | None = None) -> None:
    """Script entrypoint for ensuring the demo tenant exists."""

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--owner", help="auth subject to grant the owner role")
    parser.add_argument("--slug", default=os.getenv("DEMO_TENANT_SLUG", DEFAULT_TENANT_SLUG))
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="create missing tables from the ORM models (local development only)",
    )
    args = parser.parse_args(argv)

    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL environment variable is required")

    logger.info("Bootstrapping demo tenant on %s", _safe_url(db_url))
    if args.create_schema:
        Base.metadata.create_all(get_engine(db_url))

    with session_scope(db_url) as session:
        tenant, created_tables, created_tenant = ensure_demo_entities(
            session, owner_user_id=args.owner, tenant_slug=args.slug
        )

    logger.info(
        "Tenant %s (%s), %d tables created",
        "created" if created_tenant else "existing",
        tenant.slug,
        created_tables,
    )


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()
