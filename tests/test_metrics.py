from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from app.services import entitlement
from app.services.access import AccessDenied
from app.services.usage_reset import reset_monthly_usage_counters
from tests.utils.auth import user_headers
from tests.utils.factories import (
    OPERATOR,
    make_identity,
    make_subscription,
    plan_by_name,
    principal_for,
)


def _value(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels or None) or 0.0


def test_metrics_endpoint_exposes_counters(client, db):
    user = make_identity(db)
    make_subscription(db, user, plan_by_name(db))
    client.get("/v1/usage/entitlement", headers=user_headers(user.id))

    resp = client.get("/metrics")
    assert resp.status_code == 200
    body = resp.text
    assert "entitlement_checks_total" in body
    assert "http_requests_total" in body or "http_request_duration" in body


def test_entitlement_and_increment_counters(db):
    allowed_before = _value("entitlement_checks_total", result="allowed")
    exhausted_before = _value("entitlement_checks_total", result="exhausted")
    rejects_before = _value("quota_reject_total")
    success_before = _value("usage_increments_total", status="success")

    user = make_identity(db)
    principal = principal_for(user)
    make_subscription(db, user, plan_by_name(db, "Basic"), used=4)
    entitlement.check_entitlement(db, principal)
    entitlement.increment_usage(db, principal)
    entitlement.check_entitlement(db, principal)

    assert _value("entitlement_checks_total", result="allowed") == allowed_before + 1
    assert _value("entitlement_checks_total", result="exhausted") == exhausted_before + 1
    assert _value("quota_reject_total") == rejects_before + 1
    assert _value("usage_increments_total", status="success") == success_before + 1


def test_reset_rows_counter(db):
    now = datetime(2098, 3, 1, tzinfo=timezone.utc)
    before = _value("usage_reset_rows_total")
    make_subscription(
        db, make_identity(db), plan_by_name(db), used=2, cycle_end=now - timedelta(days=1)
    )
    reset_monthly_usage_counters(db, OPERATOR, now=now)
    assert _value("usage_reset_rows_total") == before + 1


def test_access_denied_counter(db):
    before = _value("access_denied_total", reason="operator_only")
    user = make_identity(db)
    with pytest.raises(AccessDenied):
        reset_monthly_usage_counters(db, principal_for(user))
    assert _value("access_denied_total", reason="operator_only") == before + 1
