from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_create_coupon_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    existing = set(inspector.get_table_names())

    if "coupons" not in existing:
        op.create_table(
            "coupons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(length=32), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="available"),
            sa.Column("claimed_by", sa.String(length=64), nullable=True),
            sa.Column("claimed_at", sa.DateTime(), nullable=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("code", name="uq_coupons_code"),
        )
        op.create_index("ix_coupons_id", "coupons", ["id"], unique=False)
        op.create_index("ix_coupons_status_created_at", "coupons", ["status", "created_at"], unique=False)

    if "claims" not in existing:
        op.create_table(
            "claims",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "coupon_id",
                sa.Integer(),
                sa.ForeignKey("coupons.id", ondelete="SET NULL", name="fk_claims_coupon_id_coupons"),
                nullable=True,
            ),
            sa.Column("coupon_code", sa.String(length=32), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=False, server_default="0.0.0.0"),
            sa.Column("session_id", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_claims_id", "claims", ["id"], unique=False)
        op.create_index("ix_claims_coupon_id", "claims", ["coupon_id"], unique=False)
        op.create_index("ix_claims_session_id", "claims", ["session_id"], unique=False)
        op.create_index("ix_claims_created_at", "claims", ["created_at"], unique=False)

    if "admin_users" not in existing:
        op.create_table(
            "admin_users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="admin"),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("email", name="uq_admin_users_email"),
        )
        op.create_index("ix_admin_users_id", "admin_users", ["id"], unique=False)

    if "admin_login_attempts" not in existing:
        op.create_table(
            "admin_login_attempts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("failures", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("window_started_at", sa.DateTime(), nullable=True),
            sa.Column("locked_until", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_admin_login_attempts_id", "admin_login_attempts", ["id"], unique=False)
        op.create_index("ix_admin_login_attempts_email", "admin_login_attempts", ["email"], unique=True)

    if "admin_audit_log" not in existing:
        op.create_table(
            "admin_audit_log",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("action", sa.String(length=64), nullable=False),
            sa.Column("entity_type", sa.String(length=32), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("meta_json", sa.Text(), nullable=True),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_admin_audit_log_id", "admin_audit_log", ["id"], unique=False)
        op.create_index("ix_admin_audit_log_user_id", "admin_audit_log", ["user_id"], unique=False)
        op.create_index("ix_admin_audit_log_action", "admin_audit_log", ["action"], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())
    for table_name in ("admin_audit_log", "admin_login_attempts", "admin_users", "claims", "coupons"):
        if table_name in existing:
            op.drop_table(table_name)
