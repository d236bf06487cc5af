"""Column types shared by the models and migrations."""
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonDoc = JSONB().with_variant(JSON, "sqlite")

SUBSCRIPTION_STATUSES = ("pending", "active", "cancelled", "expired", "past_due", "paused")
LIVE_SUBSCRIPTION_STATUSES = ("pending", "active", "past_due", "paused")
PAYMENT_STATUSES = ("pending", "authorized", "captured", "failed", "refunded")
