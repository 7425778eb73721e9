from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core import config
from app.core.exceptions import (
    BelowMinimum, DuplicatePayment, Forbidden, GatewayRejected, GatewayUnreachable,
    InvalidTransition, NotFound, NothingToRefund, OverPayment, PaymentNotCompleted,
    RefundExceedsNetPaid, ValidationFailed,
)
from app.models.enums import BookingPaymentStatus, PaymentStatus, PaymentType
from app.models.payment import Payment
from app.schemas.booking import BookingUpdate
from app.services import booking_requests, bookings, ledger


def pay(db, gateway, actor, booking, amount, **kwargs):
    return ledger.initiate(db, gateway, actor, booking.id, amount, return_url="https://app.test/return",
                           website_url="https://app.test", **kwargs)


# =====================================================================
# END-TO-END: partial payments then full refund
# =====================================================================
def test_partial_payments_then_full_refund(db, gateway, user, owner, confirmed_booking):
    booking = confirmed_booking
    assert booking.total_cost == 5200

    # First partial payment
    first = pay(db, gateway, user, booking, 1000, expected_amount=5200)
    db.refresh(booking)

    assert first.booking_synced
    assert first.payment.cumulative_paid == 1000
    assert first.payment.expected_amount == 5200
    assert first.payment.payment_status == PaymentStatus.PENDING
    assert booking.payment_status == BookingPaymentStatus.PARTIALLY_PAID
    assert booking.amount_paid == 1000
    assert booking.balance_amount == 4200

    # Balance settles the booking
    second = pay(db, gateway, user, booking, 4200)
    db.refresh(booking)

    assert second.payment.id == first.payment.id
    assert second.payment.cumulative_paid == 5200
    assert second.payment.payment_status == PaymentStatus.COMPLETED
    assert booking.payment_status == BookingPaymentStatus.PAID
    assert booking.balance_amount == 0

    # Full refund when no amount is given
    gateway.complete(second.payment.transaction_id)
    result = ledger.refund(db, gateway, owner, second.payment.transaction_id)
    db.refresh(booking)

    assert result.refunded_amount == 5200
    assert result.net_paid_after_refund == 0
    assert result.payment.cumulative_paid == 5200
    assert result.payment.refund_amount == 5200
    assert result.payment.payment_status == PaymentStatus.REFUNDED
    assert booking.payment_status == BookingPaymentStatus.REFUNDED
    assert booking.amount_paid == 0


def test_gateway_receives_minor_units(db, gateway, user, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000.4, purchase_order_id="order-7")

    assert gateway.initiated == [("pidx-1", 100000, "order-7")]
    assert result.payment.amount == 1000
    assert result.payment.cumulative_paid == 1000


# =====================================================================
# INITIATE VALIDATION
# =====================================================================
def test_below_minimum_is_rejected_without_ledger_change(db, gateway, user, confirmed_booking):
    with pytest.raises(BelowMinimum) as exc:
        pay(db, gateway, user, confirmed_booking, 499)

    assert "500" in exc.value.message
    assert gateway.initiated == []
    assert db.query(Payment).count() == 0


def test_non_positive_amount_is_invalid(db, gateway, user, confirmed_booking):
    with pytest.raises(ValidationFailed):
        pay(db, gateway, user, confirmed_booking, 0)


def test_overpayment_is_rejected(db, gateway, user, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 5000)

    with pytest.raises(OverPayment):
        pay(db, gateway, user, confirmed_booking, 600)

    payment = ledger.get_payment_for_booking(db, confirmed_booking.id)
    assert payment.cumulative_paid == 5000
    assert len(gateway.initiated) == 1


def test_verify_after_refund_keeps_refunded(db, gateway, user, owner, confirmed_booking):
    pidx = pay(db, gateway, user, confirmed_booking, 5200).payment.transaction_id
    gateway.complete(pidx)
    ledger.verify(db, gateway, pidx)
    ledger.refund(db, gateway, owner, pidx)

    # Gateway still reports the original transaction as Completed
    result = ledger.verify(db, gateway, pidx)
    db.refresh(confirmed_booking)

    assert result.completed
    assert result.payment.payment_status == PaymentStatus.REFUNDED
    assert result.payment.net_paid == 0
    assert confirmed_booking.payment_status == BookingPaymentStatus.REFUNDED
    assert confirmed_booking.amount_paid == 0


def test_cumulative_paid_bounded_after_refund_and_repay(db, gateway, user, owner, confirmed_booking):
    pidx = pay(db, gateway, user, confirmed_booking, 5200).payment.transaction_id
    gateway.complete(pidx)
    ledger.refund(db, gateway, owner, pidx)

    with pytest.raises(OverPayment):
        pay(db, gateway, user, confirmed_booking, 5200)

    payment = ledger.get_payment_for_booking(db, confirmed_booking.id)
    assert payment.cumulative_paid == 5200
    assert payment.cumulative_paid <= payment.expected_amount + config.PAYMENT_ROUNDING_TOLERANCE
    assert payment.payment_status == PaymentStatus.REFUNDED
    assert len(gateway.initiated) == 1


def test_only_booking_user_or_admin_pays(db, gateway, other_user, admin, confirmed_booking):
    with pytest.raises(Forbidden):
        pay(db, gateway, other_user, confirmed_booking, 1000)

    assert pay(db, gateway, admin, confirmed_booking, 1000).payment.cumulative_paid == 1000


def test_cancelled_booking_takes_no_payment(db, gateway, user, confirmed_booking):
    booking_requests.cancel(db, user, confirmed_booking.request_id)

    with pytest.raises(InvalidTransition):
        pay(db, gateway, user, confirmed_booking, 1000)


def test_unknown_booking(db, gateway, user):
    with pytest.raises(NotFound):
        ledger.initiate(db, gateway, user, 404, 1000)


def test_gateway_timeout_leaves_ledger_untouched(db, gateway, user, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 1000)
    gateway.go_offline()

    with pytest.raises(GatewayUnreachable):
        pay(db, gateway, user, confirmed_booking, 1000)

    payment = ledger.get_payment_for_booking(db, confirmed_booking.id)
    db.refresh(confirmed_booking)
    assert payment.cumulative_paid == 1000
    assert payment.transaction_id == "pidx-1"
    assert confirmed_booking.amount_paid == 1000


def test_gateway_rejection_propagates(db, gateway, user, confirmed_booking):
    gateway.error = GatewayRejected(details={"response": {"amount": ["Amount should be greater than 1000"]}})

    with pytest.raises(GatewayRejected):
        pay(db, gateway, user, confirmed_booking, 600)

    assert db.query(Payment).count() == 0


def test_cumulative_paid_never_decreases(db, gateway, user, owner, confirmed_booking):
    history = []
    for amount in (600, 700, 800):
        history.append(pay(db, gateway, user, confirmed_booking, amount).payment.cumulative_paid)

    pidx = ledger.get_payment_for_booking(db, confirmed_booking.id).transaction_id
    gateway.complete(pidx)
    refunded = ledger.refund(db, gateway, owner, pidx, 500)
    history.append(refunded.payment.cumulative_paid)

    assert history == sorted(history)
    assert history[-1] == 2100
    assert refunded.net_paid_after_refund == 1600


# =====================================================================
# VERIFY
# =====================================================================
def test_verify_pending_is_not_an_error(db, gateway, user, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000)

    outcome = ledger.verify(db, gateway, result.payment.transaction_id)

    assert outcome.completed is False
    assert outcome.gateway_status == "Pending"
    assert outcome.payment is None


def test_verify_uses_cumulative_paid(db, gateway, user, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 1000)
    second = pay(db, gateway, user, confirmed_booking, 1000)
    gateway.complete(second.payment.transaction_id)

    outcome = ledger.verify(db, gateway, second.payment.transaction_id)
    db.refresh(confirmed_booking)

    assert outcome.completed
    assert outcome.payment.paid_at is not None
    assert outcome.payment.payment_status == PaymentStatus.PARTIALLY_PAID
    assert confirmed_booking.payment_status == BookingPaymentStatus.PARTIALLY_PAID
    assert confirmed_booking.amount_paid == 2000


def test_verify_full_payment_completes(db, gateway, user, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 5200)
    gateway.complete(result.payment.transaction_id)

    outcome = ledger.verify(db, gateway, result.payment.transaction_id)
    db.refresh(confirmed_booking)

    assert outcome.payment.payment_status == PaymentStatus.COMPLETED
    assert confirmed_booking.payment_status == BookingPaymentStatus.PAID


def test_verify_unknown_pidx(db, gateway):
    gateway.complete("pidx-unknown")

    with pytest.raises(NotFound):
        ledger.verify(db, gateway, "pidx-unknown")


# =====================================================================
# REFUND
# =====================================================================
def test_refund_requires_completed_gateway_transaction(db, gateway, user, owner, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000)

    with pytest.raises(PaymentNotCompleted):
        ledger.refund(db, gateway, owner, result.payment.transaction_id)


def test_partial_refund(db, gateway, user, owner, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 3000)
    gateway.complete(result.payment.transaction_id)

    refunded = ledger.refund(db, gateway, owner, result.payment.transaction_id, 1000)
    db.refresh(confirmed_booking)

    assert refunded.refunded_amount == 1000
    assert refunded.net_paid_after_refund == 2000
    assert refunded.payment.payment_status == PaymentStatus.PARTIALLY_PAID
    assert confirmed_booking.payment_status == BookingPaymentStatus.PARTIALLY_PAID
    assert confirmed_booking.amount_paid == 2000


def test_refund_more_than_net_paid_is_rejected(db, gateway, user, owner, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000)
    gateway.complete(result.payment.transaction_id)

    with pytest.raises(RefundExceedsNetPaid):
        ledger.refund(db, gateway, owner, result.payment.transaction_id, 1500)

    payment = ledger.get_payment_for_booking(db, confirmed_booking.id)
    assert payment.refund_amount == 0


def test_refund_amount_must_be_positive(db, gateway, user, owner, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000)
    gateway.complete(result.payment.transaction_id)

    with pytest.raises(ValidationFailed):
        ledger.refund(db, gateway, owner, result.payment.transaction_id, -5)


def test_nothing_left_to_refund(db, gateway, user, owner, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000)
    pidx = result.payment.transaction_id
    gateway.complete(pidx)
    ledger.refund(db, gateway, owner, pidx)

    with pytest.raises(NothingToRefund):
        ledger.refund(db, gateway, owner, pidx)


def test_refund_is_for_venue_owner(db, gateway, user, confirmed_booking):
    result = pay(db, gateway, user, confirmed_booking, 1000)
    gateway.complete(result.payment.transaction_id)

    with pytest.raises(Forbidden):
        ledger.refund(db, gateway, user, result.payment.transaction_id)


# =====================================================================
# MIRROR FAILURE + RECONCILIATION
# =====================================================================
def test_mirror_failure_keeps_ledger_and_is_repaired_on_read(db, gateway, user, owner, confirmed_booking, monkeypatch):
    def broken_sync(db, payment):
        raise OperationalError("UPDATE bookings", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger, "sync_booking_from_payment", broken_sync)

    result = pay(db, gateway, user, confirmed_booking, 1000)

    assert result.booking_synced is False
    assert ledger.get_payment_for_booking(db, confirmed_booking.id).cumulative_paid == 1000

    db.refresh(confirmed_booking)
    assert confirmed_booking.payment_status == BookingPaymentStatus.UNPAID
    assert confirmed_booking.amount_paid == 0

    monkeypatch.undo()

    booking, payment = bookings.get_booking_detail(db, owner, confirmed_booking.id)

    assert booking.payment_status == BookingPaymentStatus.PARTIALLY_PAID
    assert booking.amount_paid == 1000
    assert booking.balance_amount == 4200
    assert payment.net_paid == 1000


def test_reconcile_all_repairs_drifted_bookings(db, gateway, user, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 5200)

    confirmed_booking.payment_status = BookingPaymentStatus.UNPAID
    confirmed_booking.amount_paid = 0
    db.commit()

    assert ledger.reconcile_all(db) == 1
    db.refresh(confirmed_booking)
    assert confirmed_booking.payment_status == BookingPaymentStatus.PAID
    assert ledger.reconcile_all(db) == 0


def test_reconcile_consistent_booking_is_noop(db, confirmed_booking):
    assert ledger.reconcile_booking(db, confirmed_booking) is False


# =====================================================================
# ADVANCE SCHEDULE + REPRICING
# =====================================================================
def test_set_payment_details_creates_advance_schedule(db, owner, confirmed_booking):
    sent = []
    due = date.today() + timedelta(days=7)

    payment = ledger.set_payment_details(
        db, owner, confirmed_booking.id, 2000, due, "Pay via Khalti",
        notify=lambda recipient, *args: sent.append(recipient),
    )

    assert payment.payment_type == PaymentType.ADVANCE
    assert payment.expected_amount == 5200
    assert payment.advance_amount == 2000
    assert payment.cumulative_paid == 0
    assert sent == [confirmed_booking.contact_email]

    with pytest.raises(DuplicatePayment):
        ledger.set_payment_details(db, owner, confirmed_booking.id, 2000, due, "Again")


def test_advance_must_not_exceed_total(db, owner, confirmed_booking):
    with pytest.raises(ValidationFailed):
        ledger.set_payment_details(db, owner, confirmed_booking.id, 6000, date.today(), "Pay")


def test_repricing_moves_expected_amount(db, gateway, user, owner, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 5200)

    booking = bookings.update_booking(db, owner, confirmed_booking.id, BookingUpdate(guest_count=20))
    payment = ledger.get_payment_for_booking(db, booking.id)

    assert booking.total_cost == 10200
    assert payment.expected_amount == 10200
    assert payment.payment_status == PaymentStatus.PENDING
    assert booking.payment_status == BookingPaymentStatus.PARTIALLY_PAID
    assert booking.amount_paid == 5200
    assert booking.balance_amount == 5000


def test_repricing_below_paid_amount_is_rejected(db, gateway, user, owner, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 5200)

    with pytest.raises(ValidationFailed):
        bookings.update_booking(db, owner, confirmed_booking.id, BookingUpdate(guest_count=5))

    db.refresh(confirmed_booking)
    assert confirmed_booking.guest_count == 10
    assert confirmed_booking.total_cost == 5200


def test_received_amount(gateway):
    gateway.amounts["pidx-9"] = 150000
    gateway.complete("pidx-9")

    assert ledger.received_amount(gateway, "pidx-9") == {
        "transaction_id": "pidx-9",
        "received_amount": 1500,
        "status": "Completed",
    }

    with pytest.raises(PaymentNotCompleted):
        ledger.received_amount(gateway, "pidx-10")


def test_list_owner_payments(db, gateway, user, owner, confirmed_booking):
    pay(db, gateway, user, confirmed_booking, 1000)

    assert [p.booking_id for p in ledger.list_owner_payments(db, owner)] == [confirmed_booking.id]
    with pytest.raises(Forbidden):
        ledger.list_owner_payments(db, user)
