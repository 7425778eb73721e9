"""
Payment ledger for bookings.

One ``Payment`` row per booking accumulates every partial payment
(``cumulative_paid``) and every refund (``refund_amount``). The booking's
``payment_status``/``amount_paid``/``balance_amount`` are a mirror of that
row and are written only from here:

* ledger changes are committed first, under a row lock and with SQL-side
  increments, so two concurrent payments on one booking cannot lose an
  update;
* the booking mirror is written in a second step. If that step fails the
  ledger change stands, the inconsistency is logged, and
  ``reconcile_booking`` repairs the booking the next time it is read.

All amounts are in rupees. Paisa only exist inside ``app.services.khalti``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.core.exceptions import (
    BelowMinimum, DuplicatePayment, Forbidden, InvalidTransition, NotFound,
    NothingToRefund, OverPayment, PaymentNotCompleted, RefundExceedsNetPaid,
    ValidationFailed,
)
from app.core.logging_config import payment_logger
from app.core.redis import invalidate_venue_bookings
from app.models.booking import Booking
from app.models.enums import BookingPaymentStatus, BookingStatus, PaymentStatus, PaymentType
from app.models.payment import Payment
from app.models.venue import Venue
from app.services.common import get_booking, get_venue, require_venue_owner, run_notifier
from app.services.khalti import to_minor_units
from app.utils.pricing import apply_pricing

logger = payment_logger()

CENT = 0.005


@dataclass
class LedgerResult:
    payment: Payment
    booking_synced: bool = True
    gateway: dict = field(default_factory=dict)


@dataclass
class VerificationResult:
    completed: bool
    gateway_status: str
    payment: Payment | None = None
    booking_synced: bool = True
    gateway: dict = field(default_factory=dict)


@dataclass
class RefundResult:
    refunded_amount: float
    net_paid_after_refund: float
    payment: Payment
    booking_synced: bool = True
    transaction_details: dict = field(default_factory=dict)


def _now():
    return datetime.now(timezone.utc)


# =====================================================================
# DERIVED STATUS
# =====================================================================
def derive_booking_payment_status(payment: Payment | None) -> BookingPaymentStatus:
    if payment is None:
        return BookingPaymentStatus.UNPAID

    net = payment.net_paid
    if (payment.refund_amount or 0) > 0 and net <= 0:
        return BookingPaymentStatus.REFUNDED
    if net > 0 and net >= payment.expected_amount:
        return BookingPaymentStatus.PAID
    if net > 0:
        return BookingPaymentStatus.PARTIALLY_PAID
    return BookingPaymentStatus.UNPAID


def _charge_status(payment: Payment) -> PaymentStatus:
    if payment.net_paid >= payment.expected_amount:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PENDING


def _settled_status(payment: Payment) -> PaymentStatus:
    # Gateway confirmed the transaction; the row is Completed only once fully paid
    if (payment.refund_amount or 0) > 0 and payment.net_paid <= 0:
        return PaymentStatus.REFUNDED
    if payment.net_paid >= payment.expected_amount:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PARTIALLY_PAID


def _refund_status(payment: Payment) -> PaymentStatus:
    if payment.net_paid <= 0:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIALLY_PAID


# =====================================================================
# BOOKING MIRROR + RECONCILIATION
# =====================================================================
def _apply_mirror(booking: Booking, payment: Payment | None) -> bool:
    status = derive_booking_payment_status(payment)
    net = payment.net_paid if payment else 0.0

    changed = booking.payment_status != status or abs((booking.amount_paid or 0) - net) > CENT
    if not changed:
        return False

    if abs((booking.amount_paid or 0) - net) > CENT:
        booking.last_payment_date = _now()
    booking.payment_status = status
    booking.amount_paid = net
    apply_pricing(booking)
    return True


def sync_booking_from_payment(db: Session, payment: Payment) -> bool:
    booking = db.query(Booking).filter(Booking.id == payment.booking_id).first()
    if booking is None:
        raise NotFound(f"Booking {payment.booking_id} for payment {payment.id} not found")
    return _apply_mirror(booking, payment)


def mirror_booking(db: Session, payment: Payment) -> bool:
    """Second phase of every ledger write. Returns False on inconsistency."""
    try:
        sync_booking_from_payment(db, payment)
        db.commit()
    except (SQLAlchemyError, NotFound) as e:
        db.rollback()
        logger.error(
            f"LEDGER/BOOKING INCONSISTENCY | Payment={payment.id} | Booking={payment.booking_id} | "
            f"Ledger committed, booking mirror failed: {e}"
        )
        return False

    venue_id = db.query(Booking.venue_id).filter(Booking.id == payment.booking_id).scalar()
    if venue_id is not None:
        invalidate_venue_bookings(venue_id)
    return True


def reconcile_booking(db: Session, booking: Booking) -> bool:
    """Re-derive the booking's payment mirror from its ledger row.

    Returns True when drift was found and repaired.
    """
    payment = db.query(Payment).filter(Payment.booking_id == booking.id).first()
    before = (getattr(booking.payment_status, "value", booking.payment_status), booking.amount_paid)

    try:
        if not _apply_mirror(booking, payment):
            return False
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(booking)
    invalidate_venue_bookings(booking.venue_id)
    logger.warning(
        f"Reconciled booking | Booking={booking.id} | was={before} | "
        f"now=({booking.payment_status.value}, {booking.amount_paid})"
    )
    return True


def reconcile_all(db: Session) -> int:
    repaired = 0
    bookings = db.query(Booking).join(Payment, Payment.booking_id == Booking.id).all()
    for booking in bookings:
        if reconcile_booking(db, booking):
            repaired += 1
    if repaired:
        logger.warning(f"Reconciliation pass repaired {repaired} booking(s)")
    return repaired


# =====================================================================
# ROW ACCESS
# =====================================================================
def _locked(query):
    return query.with_for_update().populate_existing().first()


def _lock_or_create_payment(db: Session, booking: Booking, expected_amount: float) -> Payment:
    payment = _locked(db.query(Payment).filter(Payment.booking_id == booking.id))
    if payment is not None:
        return payment

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=0.0,
        cumulative_paid=0.0,
        expected_amount=expected_amount,
        refund_amount=0.0,
        payment_status=PaymentStatus.PENDING,
    )
    db.add(payment)
    try:
        db.flush()
    except IntegrityError:
        # Lost the race to create the row; use the winner's
        db.rollback()
        payment = _locked(db.query(Payment).filter(Payment.booking_id == booking.id))
        if payment is None:
            raise
    return payment


def _check_overpayment(already_paid: float, amount: float, expected: float):
    if already_paid + amount > expected + config.PAYMENT_ROUNDING_TOLERANCE:
        remaining = round(max(expected - already_paid, 0), 2)
        raise OverPayment(f"Payment exceeds the remaining balance of {remaining}.")


# =====================================================================
# INITIATE
# =====================================================================
def initiate(db: Session, gateway, actor, booking_id: int, amount: float,
             expected_amount: float | None = None, purchase_order_id: str | None = None,
             purchase_order_name: str | None = None, return_url: str = "",
             website_url: str = "") -> LedgerResult:
    booking = get_booking(db, booking_id)
    if not (actor.is_admin or booking.user_id == actor.id):
        raise Forbidden("Not authorized to pay for this booking")
    if booking.status in (BookingStatus.CANCELLED, BookingStatus.REJECTED):
        raise InvalidTransition(f"Payments are not accepted for a {booking.status.value.lower()} booking")

    if amount is None or amount <= 0:
        raise ValidationFailed("Payment amount must be greater than zero")
    if round(amount) < config.MIN_PAYMENT_AMOUNT:
        raise BelowMinimum(f"Payment must be a minimum of {config.MIN_PAYMENT_AMOUNT:g}.")

    # Book exactly what the gateway charges
    amount = float(round(amount))

    existing = db.query(Payment).filter(Payment.booking_id == booking.id).first()
    if existing is not None:
        expected = existing.expected_amount
        _check_overpayment(existing.cumulative_paid, amount, expected)
    else:
        expected = expected_amount or booking.total_cost
        _check_overpayment(0, amount, expected)

    # Gateway first: a failure here leaves the ledger untouched
    gateway_payment = gateway.initiate(
        to_minor_units(amount),
        purchase_order_id or f"booking_{booking.id}",
        purchase_order_name or f"Booking #{booking.id}",
        return_url,
        website_url,
    )

    try:
        payment = _lock_or_create_payment(db, booking, expected)
        _check_overpayment(payment.cumulative_paid, amount, payment.expected_amount)

        db.query(Payment).filter(Payment.id == payment.id).update(
            {
                Payment.cumulative_paid: Payment.cumulative_paid + amount,
                Payment.amount: amount,
                Payment.transaction_id: gateway_payment.pidx,
            },
            synchronize_session=False,
        )
        db.refresh(payment)
        payment.payment_status = _charge_status(payment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)

    logger.info(
        f"Payment Initiated | Booking={booking.id} | Amount={amount} | "
        f"Cumulative={payment.cumulative_paid}/{payment.expected_amount} | "
        f"Status={payment.payment_status.value} | pidx={gateway_payment.pidx}"
    )

    synced = mirror_booking(db, payment)
    return LedgerResult(payment=payment, booking_synced=synced, gateway=gateway_payment.raw)


# =====================================================================
# VERIFY
# =====================================================================
def verify(db: Session, gateway, pidx: str) -> VerificationResult:
    lookup = gateway.lookup(pidx)

    if not lookup.is_completed:
        logger.info(f"Payment not completed yet | pidx={pidx} | gateway_status={lookup.status}")
        return VerificationResult(completed=False, gateway_status=lookup.status, gateway=lookup.raw)

    try:
        payment = _locked(db.query(Payment).filter(Payment.transaction_id == pidx))
        if payment is None:
            raise NotFound("Payment record not found.")

        if abs(lookup.total_amount - (payment.amount or 0)) > config.PAYMENT_ROUNDING_TOLERANCE:
            logger.warning(
                f"Gateway amount differs from ledger | pidx={pidx} | "
                f"gateway={lookup.total_amount} | ledger={payment.amount}"
            )

        payment.payment_status = _settled_status(payment)
        payment.paid_at = _now()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)

    logger.info(
        f"Payment Verified | Booking={payment.booking_id} | pidx={pidx} | "
        f"Status={payment.payment_status.value}"
    )

    synced = mirror_booking(db, payment)
    return VerificationResult(
        completed=True,
        gateway_status=lookup.status,
        payment=payment,
        booking_synced=synced,
        gateway=lookup.raw,
    )


# =====================================================================
# REFUND
# =====================================================================
def refund(db: Session, gateway, actor, pidx: str, requested_amount: float | None = None) -> RefundResult:
    lookup = gateway.lookup(pidx)
    if not lookup.is_completed:
        raise PaymentNotCompleted()

    payment = db.query(Payment).filter(Payment.transaction_id == pidx).first()
    if payment is None:
        raise NotFound("Payment record not found.")

    booking = get_booking(db, payment.booking_id, include_deleted=True)
    require_venue_owner(actor, get_venue(db, booking.venue_id), "refund this payment")

    try:
        payment = _locked(db.query(Payment).filter(Payment.id == payment.id))
        net_paid = payment.net_paid
        if net_paid <= 0:
            raise NothingToRefund()

        if requested_amount is None:
            amount_to_refund = net_paid
        elif requested_amount <= 0:
            raise ValidationFailed("Refund amount must be greater than zero")
        elif requested_amount > net_paid + CENT:
            raise RefundExceedsNetPaid(
                f"Refund amount {requested_amount} exceeds the refundable balance of {net_paid}."
            )
        else:
            amount_to_refund = min(requested_amount, net_paid)

        db.query(Payment).filter(Payment.id == payment.id).update(
            {Payment.refund_amount: Payment.refund_amount + amount_to_refund},
            synchronize_session=False,
        )
        db.refresh(payment)
        payment.payment_status = _refund_status(payment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)

    logger.info(
        f"Payment Refunded | Booking={payment.booking_id} | pidx={pidx} | Refunded={amount_to_refund} | "
        f"Net={payment.net_paid} | Status={payment.payment_status.value}"
    )

    synced = mirror_booking(db, payment)
    return RefundResult(
        refunded_amount=amount_to_refund,
        net_paid_after_refund=payment.net_paid,
        payment=payment,
        booking_synced=synced,
        transaction_details=lookup.raw,
    )


# =====================================================================
# ADVANCE SCHEDULE (owner)
# =====================================================================
def set_payment_details(db: Session, actor, booking_id: int, advance_amount: float, due_date,
                        payment_instructions: str, notify=None) -> Payment:
    booking = get_booking(db, booking_id)
    venue = get_venue(db, booking.venue_id)
    require_venue_owner(actor, venue, "set payment details for this booking")

    if db.query(Payment.id).filter(Payment.booking_id == booking.id).first():
        raise DuplicatePayment()
    if advance_amount <= 0 or advance_amount > booking.total_cost:
        raise ValidationFailed("Advance amount must be between zero and the booking total")
    if not (payment_instructions or "").strip():
        raise ValidationFailed("Payment instructions are required for an advance payment")

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=0.0,
        cumulative_paid=0.0,
        expected_amount=booking.total_cost,
        refund_amount=0.0,
        payment_type=PaymentType.ADVANCE,
        advance_amount=advance_amount,
        due_date=due_date,
        payment_instructions=payment_instructions,
        payment_status=PaymentStatus.PENDING,
    )
    try:
        db.add(payment)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePayment()
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)

    logger.info(
        f"Payment Details Set | Booking={booking.id} | Advance={advance_amount} | "
        f"Due={due_date} | Expected={payment.expected_amount}"
    )

    mirror_booking(db, payment)
    run_notifier(notify, booking.contact_email, booking, payment, venue.name)
    return payment


# =====================================================================
# REPRICING
# =====================================================================
def adjust_expected_amount(db: Session, booking: Booking) -> Payment | None:
    """Follow a change of the booking total. Runs in the caller's transaction."""
    payment = _locked(db.query(Payment).filter(Payment.booking_id == booking.id))
    if payment is None:
        return None

    if payment.cumulative_paid > booking.total_cost + config.PAYMENT_ROUNDING_TOLERANCE:
        raise ValidationFailed(
            f"New total {booking.total_cost} is below the amount already paid ({payment.cumulative_paid})"
        )

    payment.expected_amount = booking.total_cost
    if payment.payment_status in (PaymentStatus.PENDING, PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_PAID):
        if payment.net_paid >= payment.expected_amount:
            payment.payment_status = PaymentStatus.COMPLETED
        elif payment.paid_at is not None:
            payment.payment_status = PaymentStatus.PARTIALLY_PAID
        else:
            payment.payment_status = PaymentStatus.PENDING

    logger.info(f"Expected amount adjusted | Booking={booking.id} | Expected={payment.expected_amount}")
    return payment


# =====================================================================
# READ SIDE
# =====================================================================
def received_amount(gateway, pidx: str) -> dict:
    lookup = gateway.lookup(pidx)
    if not lookup.is_completed:
        raise PaymentNotCompleted("Payment not completed or invalid transaction ID.")
    return {
        "transaction_id": pidx,
        "received_amount": lookup.total_amount,
        "status": lookup.status,
    }


def get_payment_for_booking(db: Session, booking_id: int) -> Payment | None:
    return db.query(Payment).filter(Payment.booking_id == booking_id).first()


def list_owner_payments(db: Session, actor):
    if actor.role not in ("owner", "admin"):
        raise Forbidden("Only venue owners can view payments")

    query = (
        db.query(Payment)
        .join(Booking, Booking.id == Payment.booking_id)
        .join(Venue, Venue.id == Booking.venue_id)
    )
    if not actor.is_admin:
        query = query.filter(Venue.owner_id == actor.id)
    return query.order_by(Payment.created_at.desc()).all()
