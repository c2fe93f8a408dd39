"""create registry tables

Revision ID: 3f1a9c2d7b40
Revises: 
Create Date: 2026-10-18 09:12:44.318205

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7b40'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

tenant_status = sa.Enum("TRIALING", "ACTIVE", "EXPIRED", "FREE", name="tenantstatus")
coupon_type = sa.Enum("TRIAL_EXTENSION", "FREE_ACCESS", "DISCOUNT", name="coupontype")


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("name", sa.String(63), primary_key=True),
        sa.Column("status", tenant_status, nullable=False),
        sa.Column("trial_ends_at", sa.DateTime(), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("discount_percent", sa.Integer(), nullable=True),
        sa.Column("stripe_coupon_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenants_status", "tenants", ["status"])

    op.create_table(
        "coupons",
        sa.Column("code", sa.String(64), primary_key=True),
        sa.Column("type", coupon_type, nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("times_redeemed", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("stripe_coupon_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "coupon_redemptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coupon_code", sa.String(), sa.ForeignKey("coupons.code"), nullable=False),
        sa.Column("tenant_name", sa.String(63), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("coupon_code", "tenant_name", name="uq_redemption_coupon_tenant"),
    )
    op.create_index("ix_coupon_redemptions_coupon_code", "coupon_redemptions", ["coupon_code"])
    op.create_index("ix_coupon_redemptions_tenant_name", "coupon_redemptions", ["tenant_name"])


def downgrade() -> None:
    op.drop_index("ix_coupon_redemptions_tenant_name", table_name="coupon_redemptions")
    op.drop_index("ix_coupon_redemptions_coupon_code", table_name="coupon_redemptions")
    op.drop_table("coupon_redemptions")
    op.drop_table("coupons")
    op.drop_index("ix_tenants_status", table_name="tenants")
    op.drop_table("tenants")
