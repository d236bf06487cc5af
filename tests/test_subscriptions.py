import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.models import UserSubscription
from app.services import subscriptions
from app.services.access import AccessDenied, ConstraintViolation, NotFoundError
from tests.utils.factories import (
    OPERATOR,
    make_identity,
    make_subscription,
    plan_by_name,
    principal_for,
)


def test_second_active_subscription_is_rejected(db):
    user = make_identity(db)
    plan = plan_by_name(db)
    make_subscription(db, user, plan)

    with pytest.raises(IntegrityError):
        make_subscription(db, user, plan_by_name(db, "Pro"))
    db.rollback()

    # only one row is active; others may coexist
    make_subscription(db, user, plan, status="cancelled")
    active = (
        db.query(UserSubscription)
        .filter_by(user_id=user.id, subscription_status="active")
        .count()
    )
    assert active == 1


def test_operator_create_conflict_maps_to_constraint_violation(db):
    user = make_identity(db)
    plan = plan_by_name(db)
    subscriptions.create_subscription(db, OPERATOR, user_id=user.id, plan_id=plan.id, status="active")

    with pytest.raises(ConstraintViolation):
        subscriptions.create_subscription(
            db, OPERATOR, user_id=user.id, plan_id=plan.id, status="active"
        )


def test_user_may_only_create_pending(db):
    user = make_identity(db)
    principal = principal_for(user)
    plan = plan_by_name(db)

    with pytest.raises(AccessDenied):
        subscriptions.create_subscription(
            db, principal, user_id=user.id, plan_id=plan.id, status="active"
        )

    start = datetime(2030, 3, 1, tzinfo=timezone.utc)
    sub = subscriptions.create_subscription(
        db, principal, user_id=user.id, plan_id=plan.id, cycle_start=start
    )
    assert sub.subscription_status == "pending"
    assert sub.analyses_used_this_month == 0
    assert subscriptions.ensure_utc(sub.current_billing_cycle_end) == start + timedelta(days=30)


def test_user_cannot_subscribe_someone_else(db):
    user = make_identity(db)
    other = make_identity(db)
    with pytest.raises(AccessDenied):
        subscriptions.create_subscription(
            db, principal_for(user), user_id=other.id, plan_id=plan_by_name(db).id
        )


def test_unknown_plan_or_status(db):
    user = make_identity(db)
    with pytest.raises(NotFoundError):
        subscriptions.create_subscription(
            db, OPERATOR, user_id=user.id, plan_id=uuid.uuid4()
        )
    with pytest.raises(ValueError):
        subscriptions.create_subscription(
            db, OPERATOR, user_id=user.id, plan_id=plan_by_name(db).id, status="trial"
        )


def test_foreign_subscriptions_are_invisible(db):
    owner = make_identity(db)
    other = make_identity(db)
    sub = make_subscription(db, owner, plan_by_name(db))

    assert subscriptions.list_subscriptions(db, principal_for(other)) == []
    with pytest.raises(NotFoundError):
        subscriptions.get_subscription(db, principal_for(other), subscription_id=sub.id)
    assert [s.id for s in subscriptions.list_subscriptions(db, principal_for(owner))] == [sub.id]
    assert subscriptions.get_subscription(db, OPERATOR, subscription_id=sub.id).id == sub.id


def test_user_cancels_own_subscription(db):
    user = make_identity(db)
    sub = make_subscription(db, user, plan_by_name(db))
    now = datetime(2031, 5, 1, tzinfo=timezone.utc)

    updated = subscriptions.update_own_subscription(
        db, principal_for(user), subscription_id=sub.id, changes={}, cancel=True, now=now
    )

    assert updated.subscription_status == "cancelled"
    assert subscriptions.ensure_utc(updated.cancelled_at) == now
    assert updated.auto_renewal_enabled is False


def test_user_edits_are_limited(db):
    user = make_identity(db)
    sub = make_subscription(db, user, plan_by_name(db), used=2)
    principal = principal_for(user)

    updated = subscriptions.update_own_subscription(
        db, principal, subscription_id=sub.id, changes={"auto_renewal_enabled": False}
    )
    assert updated.auto_renewal_enabled is False

    with pytest.raises(AccessDenied):
        subscriptions.update_own_subscription(
            db, principal, subscription_id=sub.id, changes={"analyses_used_this_month": 0}
        )


def test_status_transitions_are_operator_only(db):
    user = make_identity(db)
    sub = make_subscription(db, user, plan_by_name(db), status="pending")

    with pytest.raises(AccessDenied):
        subscriptions.set_subscription_status(
            db, principal_for(user), subscription_id=sub.id, status="active"
        )

    activated = subscriptions.set_subscription_status(
        db, OPERATOR, subscription_id=sub.id, status="active"
    )
    assert activated.subscription_status == "active"

    pause_end = datetime(2032, 1, 1, tzinfo=timezone.utc)
    paused = subscriptions.set_subscription_status(
        db, OPERATOR, subscription_id=sub.id, status="paused", pause_end=pause_end
    )
    assert paused.pause_start_date is not None
    assert subscriptions.ensure_utc(paused.pause_end_date) == pause_end

    resumed = subscriptions.set_subscription_status(
        db, OPERATOR, subscription_id=sub.id, status="active"
    )
    assert resumed.pause_start_date is None
    assert resumed.pause_end_date is None


def test_activation_conflicts_with_existing_active(db):
    user = make_identity(db)
    make_subscription(db, user, plan_by_name(db))
    pending = make_subscription(db, user, plan_by_name(db, "Pro"), status="pending")

    with pytest.raises(ConstraintViolation):
        subscriptions.set_subscription_status(
            db, OPERATOR, subscription_id=pending.id, status="active"
        )


def test_renew_advances_cycle_from_previous_end(db):
    user = make_identity(db)
    end = datetime(2033, 2, 1, tzinfo=timezone.utc)
    sub = make_subscription(db, user, plan_by_name(db), used=4, cycle_end=end)

    renewed = subscriptions.renew_billing_cycle(db, OPERATOR, subscription_id=sub.id)
    assert subscriptions.ensure_utc(renewed.current_billing_cycle_start) == end
    assert subscriptions.ensure_utc(renewed.current_billing_cycle_end) == end + timedelta(days=30)
    assert renewed.analyses_used_this_month == 4

    renewed = subscriptions.renew_billing_cycle(
        db, OPERATOR, subscription_id=sub.id, reset_usage=True
    )
    assert renewed.analyses_used_this_month == 0


def test_renew_rejects_inverted_cycle(db):
    sub = make_subscription(db, make_identity(db), plan_by_name(db))
    start = datetime(2034, 1, 10, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        subscriptions.renew_billing_cycle(
            db, OPERATOR, subscription_id=sub.id, cycle_start=start, cycle_end=start
        )


def test_ensure_utc_normalizes():
    naive = datetime(2030, 1, 1, 12, 0)
    assert subscriptions.ensure_utc(naive) == datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    offset = datetime(2030, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert subscriptions.ensure_utc(offset).hour == 12
    assert subscriptions.ensure_utc(None) is None


def test_null_auto_renewal_is_rejected(db):
    user = make_identity(db)
    sub = make_subscription(db, user, plan_by_name(db))

    with pytest.raises(ValueError):
        subscriptions.update_own_subscription(
            db, principal_for(user), subscription_id=sub.id, changes={"auto_renewal_enabled": None}
        )


def test_renew_after_failed_activation_still_works(db):
    user = make_identity(db)
    make_subscription(db, user, plan_by_name(db))
    pending = make_subscription(db, user, plan_by_name(db, "VIP"), status="pending")

    with pytest.raises(ConstraintViolation):
        subscriptions.set_subscription_status(
            db, OPERATOR, subscription_id=pending.id, status="active"
        )

    renewed = subscriptions.renew_billing_cycle(db, OPERATOR, subscription_id=pending.id)
    assert renewed.subscription_status == "pending"
