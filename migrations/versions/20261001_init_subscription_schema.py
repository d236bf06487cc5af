"""init subscription schema

Revision ID: 20261001_init
Revises:
Create Date: 2026-10-01

Identities, profiles, analysis history, plan catalog, subscriptions,
payment transactions and usage tracking.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20261001_init"
down_revision = None
branch_labels = None
depends_on = None

JSON_DOC = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")
TS = sa.DateTime(timezone=True)

SUBSCRIPTION_STATUSES = "'pending', 'active', 'cancelled', 'expired', 'past_due', 'paused'"
PAYMENT_STATUSES = "'pending', 'authorized', 'captured', 'failed', 'refunded'"


def upgrade() -> None:
    op.create_table(
        "identities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("raw_user_meta_data", JSON_DOC, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", TS, server_default=sa.func.now()),
    )

    op.create_table(
        "profiles",
        sa.Column(
            "id",
            sa.Uuid(),
            sa.ForeignKey("identities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String()),
        sa.Column("avatar_url", sa.String()),
        sa.Column("username", sa.String(), unique=True),
        sa.Column("created_at", TS, server_default=sa.func.now()),
        sa.Column("updated_at", TS, server_default=sa.func.now()),
    )
    op.create_index("ix_profiles_username", "profiles", ["username"])

    op.create_table(
        "analysis_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("analysis_data", JSON_DOC, nullable=False),
        sa.Column("overall_score", sa.Integer()),
        sa.Column("image_url", sa.String()),
        sa.Column("created_at", TS, server_default=sa.func.now()),
    )
    op.create_index("ix_analysis_history_user_id", "analysis_history", ["user_id"])
    op.create_index("ix_analysis_history_created_at", "analysis_history", ["created_at"])

    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("plan_name", sa.String(), nullable=False, unique=True),
        sa.Column("plan_price_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("monthly_analyses_limit", sa.Integer(), nullable=False),
        sa.Column("razorpay_plan_id", sa.String(), unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("features", JSON_DOC, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", TS, server_default=sa.func.now()),
        sa.Column("updated_at", TS, server_default=sa.func.now()),
    )
    op.create_index("ix_subscription_plans_plan_name", "subscription_plans", ["plan_name"])

    op.create_table(
        "user_subscriptions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("identities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("plan_id", sa.Uuid(), sa.ForeignKey("subscription_plans.id"), nullable=False),
        sa.Column("subscription_status", sa.String(), nullable=False),
        sa.Column("razorpay_subscription_id", sa.String(), unique=True),
        sa.Column("razorpay_customer_id", sa.String()),
        sa.Column("current_billing_cycle_start", TS),
        sa.Column("current_billing_cycle_end", TS),
        sa.Column("analyses_used_this_month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subscription_start_date", TS, server_default=sa.func.now()),
        sa.Column("subscription_end_date", TS),
        sa.Column("auto_renewal_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("cancelled_at", TS),
        sa.Column("pause_start_date", TS),
        sa.Column("pause_end_date", TS),
        sa.Column("metadata", JSON_DOC, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", TS, server_default=sa.func.now()),
        sa.Column("updated_at", TS, server_default=sa.func.now()),
        sa.CheckConstraint(
            f"subscription_status IN ({SUBSCRIPTION_STATUSES})",
            name="ck_user_subscriptions_status",
        ),
        sa.CheckConstraint(
            "analyses_used_this_month >= 0",
            name="ck_user_subscriptions_usage_non_negative",
        ),
    )
    op.create_index("ix_user_subscriptions_user_id", "user_subscriptions", ["user_id"])
    op.create_index(
        "ix_user_subscriptions_subscription_status", "user_subscriptions", ["subscription_status"]
    )
    op.create_index(
        "ix_user_subscriptions_razorpay_subscription_id",
        "user_subscriptions",
        ["razorpay_subscription_id"],
    )
    # one active subscription per user
    op.create_index(
        "idx_user_active_subscription",
        "user_subscriptions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("subscription_status = 'active'"),
        sqlite_where=sa.text("subscription_status = 'active'"),
    )

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("identities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subscription_id",
            sa.Uuid(),
            sa.ForeignKey("user_subscriptions.id", ondelete="SET NULL"),
        ),
        sa.Column("razorpay_payment_id", sa.String(), unique=True),
        sa.Column("razorpay_order_id", sa.String()),
        sa.Column("razorpay_signature", sa.String()),
        sa.Column("amount_paid_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        sa.Column("payment_status", sa.String(), nullable=False),
        sa.Column("payment_method", sa.String()),
        sa.Column("error_code", sa.String()),
        sa.Column("error_description", sa.Text()),
        sa.Column("transaction_date", TS, server_default=sa.func.now()),
        sa.Column("metadata", JSON_DOC, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", TS, server_default=sa.func.now()),
        sa.CheckConstraint(
            f"payment_status IN ({PAYMENT_STATUSES})",
            name="ck_payment_transactions_status",
        ),
    )
    op.create_index("ix_payment_transactions_user_id", "payment_transactions", ["user_id"])
    op.create_index(
        "ix_payment_transactions_subscription_id", "payment_transactions", ["subscription_id"]
    )
    op.create_index(
        "ix_payment_transactions_razorpay_payment_id",
        "payment_transactions",
        ["razorpay_payment_id"],
    )

    op.create_table(
        "usage_tracking",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("identities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subscription_id",
            sa.Uuid(),
            sa.ForeignKey("user_subscriptions.id", ondelete="SET NULL"),
        ),
        sa.Column("analysis_date", TS, server_default=sa.func.now()),
        sa.Column("analysis_type", sa.String(), nullable=False, server_default="body_analysis"),
        sa.Column(
            "analysis_result_id",
            sa.Uuid(),
            sa.ForeignKey("analysis_history.id", ondelete="SET NULL"),
        ),
        sa.Column("metadata", JSON_DOC, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", TS, server_default=sa.func.now()),
    )
    op.create_index("ix_usage_tracking_user_id", "usage_tracking", ["user_id"])
    op.create_index("ix_usage_tracking_analysis_date", "usage_tracking", ["analysis_date"])


def downgrade() -> None:
    op.drop_table("usage_tracking")
    op.drop_table("payment_transactions")
    op.drop_index("idx_user_active_subscription", table_name="user_subscriptions")
    op.drop_table("user_subscriptions")
    op.drop_table("subscription_plans")
    op.drop_table("analysis_history")
    op.drop_table("profiles")
    op.drop_table("identities")
