from datetime import date

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationFailed, InvalidTransition, DuplicateActiveBooking
from app.core.logging_config import booking_logger
from app.core.redis import invalidate_venue_bookings
from app.models.booking import Booking
from app.models.booking_request import BookingRequest
from app.models.enums import BookingStatus, BookingPaymentStatus, BookingPeriod, RequestStatus
from app.services.common import get_venue, get_hall, require_venue_owner, has_active_booking
from app.utils.pricing import apply_pricing, calculate_pricing

logger = booking_logger()

APPROVED_REASON = "Booking approved by venue owner"
OWNER_BOOKING_NOTE = "Booking created directly by venue owner"

# Fields carried verbatim from a request to its booking
COPIED_FIELDS = (
    "user_id", "contact_email", "venue_id", "hall_id",
    "event_type", "event_date", "guest_count",
    "original_per_plate_price", "user_offered_per_plate_price", "final_per_plate_price",
    "discount_amount", "discount_reason",
    "cancel_before_days", "cancellation_fee",
)


def derive_booking_period(event_date: date, today: date | None = None) -> BookingPeriod:
    """Snapshot of where the event sits relative to ``today``.

    Stored once when the booking is created and not refreshed afterwards.
    """
    today = today or date.today()
    if event_date < today:
        return BookingPeriod.PAST
    if event_date == today:
        return BookingPeriod.CURRENT
    return BookingPeriod.FUTURE


def build_event_fields(data, hall) -> dict:
    """Validate event/pricing input and return column values with derived pricing."""
    details = data.event_details
    pricing = data.pricing

    if details.guest_count is None or details.guest_count <= 0:
        raise ValidationFailed("Guest count must be greater than zero")
    if hall.capacity and details.guest_count > hall.capacity:
        raise ValidationFailed(f"Guest count exceeds hall capacity of {hall.capacity}")

    user_offered = pricing.user_offered_per_plate_price
    if user_offered is None:
        user_offered = pricing.original_per_plate_price

    final_price = pricing.final_per_plate_price
    if final_price is None:
        final_price = user_offered

    services = [service.model_dump() for service in data.additional_services or []]
    derived = calculate_pricing(final_price, details.guest_count, services, pricing.discount_amount)
    if derived["total_cost"] < 0:
        raise ValidationFailed("Discount cannot exceed the booking cost")

    policy = data.cancellation_policy
    return dict(
        event_type=details.event_type,
        event_date=details.date,
        guest_count=details.guest_count,
        selected_foods=list(data.selected_foods or []),
        requested_foods=list(data.requested_foods or []),
        additional_services=services,
        original_per_plate_price=pricing.original_per_plate_price,
        user_offered_per_plate_price=user_offered,
        final_per_plate_price=final_price,
        discount_amount=pricing.discount_amount or 0,
        discount_reason=pricing.discount_reason,
        amount_paid=0.0,
        cancel_before_days=policy.cancel_before_days if policy else None,
        cancellation_fee=policy.cancellation_fee if policy else 0,
        **derived,
    )


# ---------------------------------------------------------------------
# REQUEST -> BOOKING
# ---------------------------------------------------------------------
def convert(db: Session, request: BookingRequest, reason: str | None = None,
            today: date | None = None) -> Booking:
    """Materialize the booking for an accepted request.

    Runs inside the caller's transaction (flush only). Calling it again for
    the same request returns the existing booking.
    """
    if request.status != RequestStatus.ACCEPTED:
        raise InvalidTransition("Only accepted requests can be converted to bookings")

    existing = db.query(Booking).filter(Booking.request_id == request.id).first()
    if existing:
        return existing

    booking = Booking(
        request_id=request.id,
        selected_foods=list(request.selected_foods or []),
        requested_foods=list(request.requested_foods or []),
        additional_services=[dict(service) for service in request.additional_services or []],
        amount_paid=0.0,
        status=BookingStatus.ACCEPTED,
        payment_status=BookingPaymentStatus.UNPAID,
        booking_period=derive_booking_period(request.event_date, today),
        reason=reason or APPROVED_REASON,
        owner_notes="",
        is_deleted=False,
    )
    for field in COPIED_FIELDS:
        setattr(booking, field, getattr(request, field))

    # Pricing is recomputed, not copied
    apply_pricing(booking)

    # A concurrent conversion of the same request fails on the unique request_id
    db.add(booking)
    db.flush()

    logger.info(
        f"Booking converted | Request={request.id} | Booking={booking.id} | "
        f"Total={booking.total_cost} | Period={booking.booking_period.value}"
    )
    return booking


# ---------------------------------------------------------------------
# OWNER BOOKING
# ---------------------------------------------------------------------
def create_owner_booking(db: Session, actor, data, today: date | None = None) -> Booking:
    venue = get_venue(db, data.venue)
    require_venue_owner(actor, venue, "create bookings for this venue")
    hall = get_hall(db, venue.id, data.hall)

    fields = build_event_fields(data, hall)
    user_id = data.user or actor.id

    if data.user and has_active_booking(db, user_id, venue.id):
        raise DuplicateActiveBooking("This user already has an active booking at this venue.")

    booking = Booking(
        user_id=user_id,
        contact_email=None if data.user else actor.email,
        venue_id=venue.id,
        hall_id=hall.id,
        status=BookingStatus.ACCEPTED,
        payment_status=BookingPaymentStatus.UNPAID,
        booking_period=derive_booking_period(fields["event_date"], today),
        owner_notes=data.owner_notes or OWNER_BOOKING_NOTE,
        is_deleted=False,
        **fields,
    )

    try:
        db.add(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)

    invalidate_venue_bookings(venue.id)
    logger.info(f"Owner Booking Created | Owner={actor.id} | Venue={venue.id} | Booking={booking.id}")
    return booking
