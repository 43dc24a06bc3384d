"""Create tenants, memberships, tables, bookings and notification preferences.

Besides the tables mirrored by ``restohub.models`` this migration installs the
database-side guards for bookings:

- a unique index on ``(tenant_id, idempotency_key)`` so concurrent retries of
  the same request cannot insert twice;
- a GiST exclusion constraint rejecting two non-cancelled bookings whose
  ``[booking_time, ends_at)`` ranges overlap on the same table;
- row level security policies keyed on ``current_setting('app.tenant_id')``.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_create_reservation_tables"
down_revision = None
branch_labels = None
depends_on = None


_UUID = postgresql.UUID(as_uuid=True)
_NOW = sa.text("timezone('utc', now())")

_TENANT_SCOPED_TABLES = (
    "restaurant_tables",
    "bookings",
    "notification_preferences",
)


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        _UUID,
        nullable=False,
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _tenant_column() -> sa.Column:
    return sa.Column(
        "tenant_id",
        _UUID,
        sa.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=_NOW
    )


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "tenants",
        _id_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="active"
        ),
        sa.Column(
            "timezone", sa.String(length=64), nullable=False, server_default="UTC"
        ),
        _timestamp("created_at"),
    )
    op.create_index("ix_tenants_slug_unique", "tenants", ["slug"], unique=True)

    op.create_table(
        "tenant_memberships",
        _id_column(),
        _tenant_column(),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column(
            "role", sa.String(length=32), nullable=False, server_default="viewer"
        ),
        sa.Column(
            "active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_tenant_memberships_user_id", "tenant_memberships", ["user_id"]
    )
    op.create_index(
        "ix_tenant_memberships_tenant_user_unique",
        "tenant_memberships",
        ["tenant_id", "user_id"],
        unique=True,
    )

    op.create_table(
        "restaurant_tables",
        _id_column(),
        _tenant_column(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "section", sa.String(length=64), nullable=False, server_default="Main"
        ),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="4"),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            server_default="AVAILABLE",
        ),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_restaurant_tables_tenant_id", "restaurant_tables", ["tenant_id"]
    )

    op.create_table(
        "bookings",
        _id_column(),
        _tenant_column(),
        sa.Column(
            "table_id",
            _UUID,
            sa.ForeignKey("restaurant_tables.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("guest_name", sa.String(length=255), nullable=False),
        sa.Column("guest_phone", sa.String(length=64), nullable=True),
        sa.Column("guest_email", sa.String(length=320), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("booking_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "duration_minutes", sa.Integer(), nullable=False, server_default="90"
        ),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            server_default="confirmed",
        ),
        sa.Column(
            "channel", sa.String(length=16), nullable=False, server_default="WEB"
        ),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("deposit_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("confirmation_code", sa.String(length=32), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "party_size BETWEEN 1 AND 20", name="ck_bookings_party_size"
        ),
        sa.CheckConstraint("ends_at > booking_time", name="ck_bookings_interval"),
    )
    op.create_index(
        "ix_bookings_tenant_idempotency_unique",
        "bookings",
        ["tenant_id", "idempotency_key"],
        unique=True,
    )
    op.create_index(
        "ix_bookings_tenant_table_time",
        "bookings",
        ["tenant_id", "table_id", "booking_time"],
    )
    op.create_index(
        "ix_bookings_tenant_time", "bookings", ["tenant_id", "booking_time"]
    )
    op.execute(
        """
        ALTER TABLE bookings
            ADD CONSTRAINT ex_bookings_table_overlap
            EXCLUDE USING gist (
                table_id WITH =,
                tstzrange(booking_time, ends_at, '[)') WITH &&
            )
            WHERE (status <> 'cancelled' AND table_id IS NOT NULL)
        """
    )

    op.create_table(
        "notification_preferences",
        _id_column(),
        _tenant_column(),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column(
            "is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("quiet_hours_start", sa.String(length=5), nullable=True),
        sa.Column("quiet_hours_end", sa.String(length=5), nullable=True),
        sa.Column(
            "timezone", sa.String(length=64), nullable=False, server_default="UTC"
        ),
        sa.Column(
            "channel_preferences",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "category_preferences",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "enable_digest", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "digest_frequency",
            sa.String(length=16),
            nullable=False,
            server_default="daily",
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index(
        "ix_notification_preferences_tenant_user_unique",
        "notification_preferences",
        ["tenant_id", "user_id"],
        unique=True,
    )

    for table in _TENANT_SCOPED_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"""
            CREATE POLICY {table}_tenant_isolation ON {table}
                FOR ALL
                USING (
                    tenant_id::text = current_setting('app.tenant_id', true)
                    OR current_setting('app.tenant_id', true) IS NULL
                    OR current_setting('app.tenant_id', true) = ''
                )
            """
        )


def downgrade() -> None:
    for table in reversed(_TENANT_SCOPED_TABLES):
        op.execute(f"DROP POLICY IF EXISTS {table}_tenant_isolation ON {table}")

    op.drop_index(
        "ix_notification_preferences_tenant_user_unique",
        table_name="notification_preferences",
    )
    op.drop_table("notification_preferences")

    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_table_overlap")
    op.drop_index("ix_bookings_tenant_time", table_name="bookings")
    op.drop_index("ix_bookings_tenant_table_time", table_name="bookings")
    op.drop_index("ix_bookings_tenant_idempotency_unique", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_restaurant_tables_tenant_id", table_name="restaurant_tables")
    op.drop_table("restaurant_tables")

    op.drop_index(
        "ix_tenant_memberships_tenant_user_unique", table_name="tenant_memberships"
    )
    op.drop_index("ix_tenant_memberships_user_id", table_name="tenant_memberships")
    op.drop_table("tenant_memberships")

    op.drop_index("ix_tenants_slug_unique", table_name="tenants")
    op.drop_table("tenants")
