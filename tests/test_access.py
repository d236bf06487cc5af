import uuid
from decimal import Decimal

import pytest

from app.models import AnalysisHistory
from app.services import analyses, payments
from app.services.access import (
    AccessDenied,
    ConstraintViolation,
    NotFoundError,
    ServicePrincipal,
    UserPrincipal,
    check_owner,
    require_service,
    require_user,
    scope_to_owner,
)
from tests.utils.factories import (
    OPERATOR,
    make_identity,
    make_subscription,
    plan_by_name,
    principal_for,
)


def test_principal_helpers(db):
    me = UserPrincipal(user_id=uuid.uuid4())
    assert require_user(me) == me.user_id
    with pytest.raises(AccessDenied):
        require_user(ServicePrincipal())
    with pytest.raises(AccessDenied):
        require_service(me, "anything")
    require_service(ServicePrincipal(), "anything")
    check_owner(me.user_id, me)
    check_owner(uuid.uuid4(), OPERATOR)
    with pytest.raises(AccessDenied):
        check_owner(uuid.uuid4(), me)

    query = db.query(AnalysisHistory)
    assert scope_to_owner(query, AnalysisHistory.user_id, OPERATOR) is query


def test_analyses_are_owner_scoped(db):
    owner = make_identity(db)
    other = make_identity(db)
    record = analyses.create_analysis(
        db, principal_for(owner), user_id=owner.id, analysis_data={"chest": 70}, overall_score=70
    )

    assert [a.id for a in analyses.list_analyses(db, principal_for(owner))] == [record.id]
    assert analyses.list_analyses(db, principal_for(other)) == []
    with pytest.raises(NotFoundError):
        analyses.get_analysis(db, principal_for(other), analysis_id=record.id)
    with pytest.raises(NotFoundError):
        analyses.delete_analysis(db, principal_for(other), analysis_id=record.id)
    with pytest.raises(AccessDenied):
        analyses.create_analysis(
            db, principal_for(other), user_id=owner.id, analysis_data={"chest": 1}
        )

    updated = analyses.update_analysis(
        db, principal_for(owner), analysis_id=record.id, changes={"overall_score": 75}
    )
    assert updated.overall_score == 75


def test_analysis_requires_object_payload(db):
    user = make_identity(db)
    with pytest.raises(ValueError):
        analyses.create_analysis(db, principal_for(user), user_id=user.id, analysis_data=[1, 2])


def test_payments_are_recorded_by_operator_only(db):
    user = make_identity(db)
    sub = make_subscription(db, user, plan_by_name(db))

    with pytest.raises(AccessDenied):
        payments.record_transaction(
            db,
            principal_for(user),
            user_id=user.id,
            amount_paid_usd=Decimal("4.00"),
            payment_status="captured",
        )

    txn = payments.record_transaction(
        db,
        OPERATOR,
        user_id=user.id,
        subscription_id=sub.id,
        amount_paid_usd=Decimal("4.00"),
        payment_status="captured",
        razorpay_payment_id=f"pay_{uuid.uuid4().hex[:10]}",
    )
    assert txn.currency == "USD"
    assert [t.id for t in payments.list_transactions(db, principal_for(user))] == [txn.id]
    assert payments.list_transactions(db, principal_for(make_identity(db))) == []


def test_payment_validation(db):
    user = make_identity(db)
    other = make_identity(db)
    foreign_sub = make_subscription(db, other, plan_by_name(db))

    with pytest.raises(ValueError):
        payments.record_transaction(
            db, OPERATOR, user_id=user.id, amount_paid_usd=Decimal("1"), payment_status="ok"
        )
    with pytest.raises(NotFoundError):
        payments.record_transaction(
            db,
            OPERATOR,
            user_id=user.id,
            subscription_id=foreign_sub.id,
            amount_paid_usd=Decimal("1"),
            payment_status="captured",
        )


def test_duplicate_payment_id(db):
    user = make_identity(db)
    payment_id = f"pay_{uuid.uuid4().hex[:10]}"
    kwargs = dict(
        user_id=user.id,
        amount_paid_usd=Decimal("7.00"),
        payment_status="failed",
        razorpay_payment_id=payment_id,
        error_code="BAD_REQUEST_ERROR",
    )
    payments.record_transaction(db, OPERATOR, **kwargs)
    with pytest.raises(ConstraintViolation):
        payments.record_transaction(db, OPERATOR, **kwargs)
