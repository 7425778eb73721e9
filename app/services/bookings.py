from sqlalchemy.orm import Session

from app.core.exceptions import Forbidden, InvalidTransition, ValidationFailed
from app.core.logging_config import booking_logger
from app.core.redis import get_cache, set_cache, venue_bookings_key, invalidate_venue_bookings
from app.models.booking import Booking
from app.models.enums import BookingStatus, BookingPeriod
from app.models.payment import Payment
from app.schemas.booking import BookingOut
from app.services import ledger
from app.services.common import get_booking, get_venue, owns_venue, require_venue_owner, run_notifier
from app.utils.pricing import apply_pricing

logger = booking_logger()

# Owner-driven progress of a confirmed booking
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.ACCEPTED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.ACCEPTED: {BookingStatus.RUNNING, BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.RUNNING: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.REJECTED: set(),
}

LIVE_STATUSES = (BookingStatus.ACCEPTED, BookingStatus.RUNNING, BookingStatus.COMPLETED)


def validate_transition(current: BookingStatus, target: BookingStatus):
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot move booking from {current.value} to {target.value}")


def _commit(db: Session):
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


# =====================================================================
# PROGRESS: Running / Completed
# =====================================================================
def set_progress(db: Session, actor, booking_id: int, is_completed: bool, notify=None) -> Booking:
    booking = get_booking(db, booking_id)
    venue = get_venue(db, booking.venue_id)
    require_venue_owner(actor, venue, "update this booking's status")

    target = BookingStatus.COMPLETED if is_completed else BookingStatus.RUNNING
    validate_transition(booking.status, target)

    booking.status = target
    _commit(db)
    db.refresh(booking)
    invalidate_venue_bookings(venue.id)

    logger.info(f"Booking {target.value} | Booking={booking.id} | Owner={actor.id}")

    if is_completed:
        run_notifier(notify, booking.contact_email, booking, venue.name)
    return booking


# =====================================================================
# OWNER EDIT
# =====================================================================
def update_booking(db: Session, actor, booking_id: int, data) -> Booking:
    booking = get_booking(db, booking_id)
    venue = get_venue(db, booking.venue_id)
    require_venue_owner(actor, venue, "edit this booking")

    if booking.status in (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED):
        raise InvalidTransition(f"{booking.status.value} bookings cannot be edited")

    if data.guest_count is not None:
        if data.guest_count <= 0:
            raise ValidationFailed("Guest count must be greater than zero")
        booking.guest_count = data.guest_count
    if data.final_per_plate_price is not None:
        booking.final_per_plate_price = data.final_per_plate_price
    if data.additional_services is not None:
        booking.additional_services = [s.model_dump() for s in data.additional_services]
    if data.discount_amount is not None:
        booking.discount_amount = data.discount_amount
    if data.discount_reason is not None:
        booking.discount_reason = data.discount_reason
    if data.owner_notes is not None:
        booking.owner_notes = data.owner_notes

    apply_pricing(booking)

    try:
        if booking.total_cost < 0:
            raise ValidationFailed("Discount cannot exceed the booking cost")
        payment = ledger.adjust_expected_amount(db, booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)

    logger.info(f"Booking Updated | Booking={booking.id} | Total={booking.total_cost}")

    if payment is not None:
        ledger.mirror_booking(db, payment)
        db.refresh(booking)
    invalidate_venue_bookings(venue.id)
    return booking


# =====================================================================
# DELETE
# =====================================================================
def soft_delete(db: Session, actor, booking_id: int) -> Booking:
    booking = get_booking(db, booking_id)
    require_venue_owner(actor, get_venue(db, booking.venue_id), "delete this booking")

    booking.is_deleted = True
    _commit(db)
    db.refresh(booking)
    invalidate_venue_bookings(booking.venue_id)

    logger.info(f"Booking Soft-Deleted | Booking={booking.id} | Owner={actor.id}")
    return booking


def hard_delete(db: Session, actor, booking_id: int):
    booking = get_booking(db, booking_id, include_deleted=True)
    require_venue_owner(actor, get_venue(db, booking.venue_id), "delete this booking")

    if db.query(Payment.id).filter(Payment.booking_id == booking.id).first():
        raise InvalidTransition("Bookings with payment records cannot be deleted")

    venue_id = booking.venue_id
    db.delete(booking)
    _commit(db)
    invalidate_venue_bookings(venue_id)

    logger.info(f"Booking Deleted | Booking={booking_id} | Owner={actor.id}")


# =====================================================================
# READ SIDE
# =====================================================================
def get_booking_detail(db: Session, actor, booking_id: int):
    booking = get_booking(db, booking_id)
    if booking.user_id != actor.id and not owns_venue(actor, get_venue(db, booking.venue_id)):
        raise Forbidden("Not authorized to view this booking")

    # Self-heal a payment mirror that drifted from the ledger
    ledger.reconcile_booking(db, booking)

    payment = ledger.get_payment_for_booking(db, booking.id)
    return booking, payment


def list_venue_bookings(db: Session, actor, venue_id: int, period: str | None = None):
    venue = get_venue(db, venue_id)
    require_venue_owner(actor, venue, "view bookings for this venue")

    if period is not None and period not in [p.value for p in BookingPeriod]:
        raise ValidationFailed("Period must be one of Past, Current, Future")

    key = venue_bookings_key(venue.id, period)
    cached = get_cache(key)
    if cached is not None:
        return cached

    query = db.query(Booking).filter(
        Booking.venue_id == venue.id,
        Booking.is_deleted == False,  # noqa: E712
        Booking.status.in_(LIVE_STATUSES),
    )
    if period:
        query = query.filter(Booking.booking_period == BookingPeriod(period))

    bookings = [
        BookingOut.from_row(b).model_dump(mode="json")
        for b in query.order_by(Booking.event_date.asc()).all()
    ]
    set_cache(key, bookings, ttl=60)
    return bookings
