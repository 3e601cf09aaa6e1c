from datetime import datetime, timedelta, timezone

import pytest

from tipme import crud, models, schemas
from tipme.errors import Conflict, NotFound, ValidationFailed
from tipme.payments import AutoCompleteCapture, PaymentCapture


def make_user(db, handle="demo-barista", role=models.Role.BARISTA):
    return crud.create_user(db, schemas.RegisterRequest(
        email=f"{handle}@example.com", password="password123", name="Demo", role=role, handle=handle,
    ))


@pytest.mark.parametrize("amount", [1, 39, 40, 41, 999, 1000, 12345, 999_999, 1_000_000])
@pytest.mark.parametrize("bps", [0, 1, 250, 333, 10000])
def test_split_fee_sums_to_amount(amount, bps):
    fee, net = crud.split_fee(amount, bps)
    assert fee + net == amount
    assert fee == (amount * bps) // 10000
    assert fee >= 0 and net >= 0


def test_split_fee_floors():
    # 2.5% of 39 cents is 0.975 cents
    assert crud.split_fee(39, 250) == (0, 39)
    assert crud.split_fee(1000, 250) == (25, 975)


def test_create_tip_records_fee_split(db_session):
    barista = make_user(db_session)
    tip = crud.create_tip(
        db_session,
        schemas.TipCreate(to_handle="demo-barista", amount_cents=1000),
        fee_bps=250,
        capture=AutoCompleteCapture(),
    )
    assert tip.to_user_id == barista.id
    assert tip.from_user_id is None
    assert (tip.amount_cents, tip.fee_cents, tip.net_cents) == (1000, 25, 975)
    assert tip.status == models.TipStatus.COMPLETED


def test_create_tip_unknown_handle(db_session):
    with pytest.raises(NotFound):
        crud.create_tip(
            db_session,
            schemas.TipCreate(to_handle="nobody", amount_cents=100),
            fee_bps=250,
            capture=AutoCompleteCapture(),
        )


def test_create_tip_keeps_capture_failure(db_session):
    class Declined(PaymentCapture):
        def __init__(self):
            self.seen = []

        def capture(self, tip):
            self.seen.append(tip.status)
            return models.TipStatus.FAILED

    make_user(db_session)
    capture = Declined()
    tip = crud.create_tip(
        db_session,
        schemas.TipCreate(to_handle="demo-barista", amount_cents=500),
        fee_bps=250,
        capture=capture,
    )
    # capture sees the persisted PENDING tip
    assert capture.seen == [models.TipStatus.PENDING]
    assert tip.status == models.TipStatus.FAILED


def test_duplicate_email_or_handle_conflicts(db_session):
    make_user(db_session, handle="first")
    with pytest.raises(Conflict):
        crud.create_user(db_session, schemas.RegisterRequest(
            email="first@example.com", password="password123", name="Other", handle="second",
        ))
    with pytest.raises(Conflict):
        crud.create_user(db_session, schemas.RegisterRequest(
            email="second@example.com", password="password123", name="Other", handle="first",
        ))


def test_admin_self_selection_rejected_unless_allowed(db_session):
    data = schemas.RegisterRequest(
        email="boss@example.com", password="password123", name="Boss", role="ADMIN", handle="boss",
    )
    with pytest.raises(ValidationFailed) as exc:
        crud.create_user(db_session, data)
    assert exc.value.field == "role"

    user = crud.create_user(db_session, data, allow_admin=True)
    assert user.role == models.Role.ADMIN


def test_password_is_hashed(db_session):
    user = make_user(db_session)
    assert user.password_hash != "password123"
    assert crud.authenticate_user(db_session, "demo-barista@example.com", "password123").id == user.id
    assert crud.authenticate_user(db_session, "demo-barista@example.com", "wrongpassword") is None
    assert crud.authenticate_user(db_session, "ghost@example.com", "password123") is None


def test_incoming_tips_newest_first(db_session):
    make_user(db_session)
    capture = AutoCompleteCapture()
    first = crud.create_tip(db_session, schemas.TipCreate(to_handle="demo-barista", amount_cents=100), 250, capture)
    second = crud.create_tip(db_session, schemas.TipCreate(to_handle="demo-barista", amount_cents=200), 250, capture)
    first.created_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db_session.commit()

    tips = crud.list_incoming_tips(db_session, first.to_user_id)
    assert [t.id for t in tips] == [second.id, first.id]
    assert crud.list_outgoing_tips(db_session, first.to_user_id) == []


def test_status_overwrite_has_no_transition_guard(db_session):
    make_user(db_session)
    tip = crud.create_tip(db_session, schemas.TipCreate(to_handle="demo-barista", amount_cents=100), 250, AutoCompleteCapture())
    assert crud.set_tip_status(db_session, tip.id, models.TipStatus.FAILED).status == models.TipStatus.FAILED
    assert crud.set_tip_status(db_session, tip.id, models.TipStatus.PENDING).status == models.TipStatus.PENDING
    with pytest.raises(NotFound):
        crud.set_tip_status(db_session, "missing", models.TipStatus.COMPLETED)


def test_payout_status_updates(db_session):
    user = make_user(db_session)
    payout = crud.create_payout(db_session, user.id, schemas.PayoutCreate(amount_cents=500))
    assert payout.status == models.PayoutStatus.REQUESTED
    payout = crud.set_payout_status(db_session, payout.id, models.PayoutStatus.PAID)
    assert payout.status == models.PayoutStatus.PAID
    payout = crud.set_payout_status(db_session, payout.id, models.PayoutStatus.REQUESTED)
    assert payout.status == models.PayoutStatus.REQUESTED
    with pytest.raises(NotFound):
        crud.set_payout_status(db_session, "missing", models.PayoutStatus.PAID)
