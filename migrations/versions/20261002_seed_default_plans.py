"""seed default subscription plans

Revision ID: 20261002_seed_plans
Revises: 20261001_init
Create Date: 2026-10-02
"""
import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from app.services.plans import DEFAULT_PLANS


revision = "20261002_seed_plans"
down_revision = "20261001_init"
branch_labels = None
depends_on = None

plans_table = sa.table(
    "subscription_plans",
    sa.column("id", sa.Uuid()),
    sa.column("plan_name", sa.String()),
    sa.column("plan_price_usd", sa.Numeric(10, 2)),
    sa.column("monthly_analyses_limit", sa.Integer()),
    sa.column("description", sa.Text()),
    sa.column("features", postgresql.JSONB().with_variant(sa.JSON(), "sqlite")),
    sa.column("is_active", sa.Boolean()),
)


def upgrade() -> None:
    """Insert plans whose name is not taken yet."""
    bind = op.get_bind()
    existing = {row[0] for row in bind.execute(sa.select(plans_table.c.plan_name))}
    rows = [
        {"id": uuid.uuid4(), "is_active": True, **plan}
        for plan in DEFAULT_PLANS
        if plan["plan_name"] not in existing
    ]
    if rows:
        op.bulk_insert(plans_table, rows)


def downgrade() -> None:
    names = [plan["plan_name"] for plan in DEFAULT_PLANS]
    op.execute(plans_table.delete().where(plans_table.c.plan_name.in_(names)))
