from datetime import date

from sqlalchemy.orm import Session

from app.core.exceptions import (
    NotFound, Forbidden, InvalidStatus, InvalidTransition, AlreadyTerminal,
    DuplicateActiveBooking, ValidationFailed,
)
from app.core.logging_config import booking_logger
from app.core.redis import invalidate_venue_bookings
from app.models.booking import Booking
from app.models.booking_request import BookingRequest
from app.models.enums import RequestStatus, BookingStatus, TERMINAL_REQUEST_STATUSES
from app.schemas.booking import EventDetails, PricingIn, AdditionalService, CancellationPolicy
from app.services.booking_conversion import build_event_fields, convert
from app.services.common import (
    get_venue, get_hall, owns_venue, require_venue_owner, has_active_booking, run_notifier,
)
from app.utils.pricing import apply_pricing

logger = booking_logger()

DECISION_STATUSES = (RequestStatus.ACCEPTED.value, RequestStatus.REJECTED.value)


def get_request(db: Session, request_id: int) -> BookingRequest:
    request = db.query(BookingRequest).filter(BookingRequest.id == request_id).first()
    if not request:
        raise NotFound("Booking request not found")
    return request


def _require_requester_or_owner(db: Session, actor, request: BookingRequest):
    if request.user_id == actor.id:
        return
    if owns_venue(actor, get_venue(db, request.venue_id)):
        return
    raise Forbidden("Not authorized to change this booking request")


# =====================================================================
# CREATE
# =====================================================================
def create(db: Session, actor, data) -> BookingRequest:
    venue = get_venue(db, data.venue)
    hall = get_hall(db, venue.id, data.hall)

    fields = build_event_fields(data, hall)

    if has_active_booking(db, actor.id, venue.id):
        raise DuplicateActiveBooking()

    request = BookingRequest(
        user_id=actor.id,
        contact_email=actor.email,
        venue_id=venue.id,
        hall_id=hall.id,
        status=RequestStatus.PENDING,
        **fields,
    )

    try:
        db.add(request)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)

    logger.info(
        f"Booking Request Created | User={actor.id} | Venue={venue.id} | "
        f"Request={request.id} | Total={request.total_cost}"
    )
    return request


# =====================================================================
# EDIT (requester, while pending)
# =====================================================================
def update(db: Session, actor, request_id: int, data) -> BookingRequest:
    request = get_request(db, request_id)
    if request.user_id != actor.id:
        raise Forbidden("Only the requester can edit this booking request")

    if request.status in TERMINAL_REQUEST_STATUSES:
        raise AlreadyTerminal(f"{request.status.value} booking requests cannot be updated")
    if request.status != RequestStatus.PENDING:
        raise InvalidTransition("Only pending booking requests can be updated")

    if data.event_details is not None or data.pricing is not None or data.additional_services is not None:
        hall = get_hall(db, request.venue_id, request.hall_id)
        merged = _MergedInput(request, data)
        for field, value in build_event_fields(merged, hall).items():
            setattr(request, field, value)

    if data.selected_foods is not None:
        request.selected_foods = list(data.selected_foods)
    if data.requested_foods is not None:
        request.requested_foods = list(data.requested_foods)
    if data.cancellation_policy is not None:
        request.cancel_before_days = data.cancellation_policy.cancel_before_days
        request.cancellation_fee = data.cancellation_policy.cancellation_fee

    apply_pricing(request)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)

    logger.info(f"Booking Request Updated | Request={request.id} | Total={request.total_cost}")
    return request


class _MergedInput:
    """Request's stored values overlaid with a partial update."""

    def __init__(self, request, data):
        self.event_details = data.event_details or EventDetails(
            event_type=request.event_type,
            date=request.event_date,
            guest_count=request.guest_count,
        )
        self.pricing = data.pricing or PricingIn(
            original_per_plate_price=request.original_per_plate_price,
            user_offered_per_plate_price=request.user_offered_per_plate_price,
            final_per_plate_price=request.final_per_plate_price,
            discount_amount=request.discount_amount or 0,
            discount_reason=request.discount_reason,
        )
        if data.additional_services is not None:
            self.additional_services = data.additional_services
        else:
            self.additional_services = [AdditionalService(**s) for s in request.additional_services or []]
        self.selected_foods = data.selected_foods if data.selected_foods is not None else request.selected_foods
        self.requested_foods = data.requested_foods if data.requested_foods is not None else request.requested_foods
        self.cancellation_policy = data.cancellation_policy or CancellationPolicy(
            cancel_before_days=request.cancel_before_days,
            cancellation_fee=request.cancellation_fee or 0,
        )


# =====================================================================
# OWNER DECISION
# =====================================================================
def decide(db: Session, actor, request_id: int, status: str, reason: str | None = None,
           notify=None, today: date | None = None):
    """Accept or reject a pending request.

    Acceptance and booking conversion commit together. ``notify`` runs
    after the commit and cannot undo it.
    """
    if status not in DECISION_STATUSES:
        raise InvalidStatus("Invalid status value")

    request = get_request(db, request_id)
    venue = get_venue(db, request.venue_id)
    require_venue_owner(actor, venue, "decide on this booking request")

    if request.status != RequestStatus.PENDING:
        raise InvalidTransition(f"Booking request is already {request.status.value}")

    reason = (reason or "").strip()
    if status == RequestStatus.REJECTED.value and not reason:
        raise ValidationFailed("A reason is required when rejecting a booking request")

    booking = None
    try:
        request.status = RequestStatus(status)
        request.reason = reason or None
        if request.status == RequestStatus.ACCEPTED:
            booking = convert(db, request, reason=reason or None, today=today)
            request.reason = booking.reason
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    if booking is not None:
        db.refresh(booking)
        invalidate_venue_bookings(venue.id)

    logger.info(
        f"Booking Request {request.status.value} | Request={request.id} | "
        f"Owner={actor.id} | Booking={booking.id if booking else None}"
    )

    run_notifier(notify, request.contact_email, request, venue.name)
    return request, booking


# =====================================================================
# CANCEL
# =====================================================================
def cancel(db: Session, actor, request_id: int) -> BookingRequest:
    request = get_request(db, request_id)
    _require_requester_or_owner(db, actor, request)

    if request.status in TERMINAL_REQUEST_STATUSES:
        raise AlreadyTerminal(f"Booking request is already {request.status.value.lower()}")

    booking = db.query(Booking).filter(Booking.request_id == request.id).first()
    if booking is not None and booking.status in (BookingStatus.RUNNING, BookingStatus.COMPLETED):
        raise InvalidTransition(f"Booking is already {booking.status.value.lower()}")

    try:
        request.status = RequestStatus.CANCELLED
        if booking is not None and booking.status not in (BookingStatus.CANCELLED, BookingStatus.REJECTED):
            booking.status = BookingStatus.CANCELLED
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)

    if booking is not None:
        invalidate_venue_bookings(request.venue_id)

    logger.info(f"Booking Request Cancelled | Request={request.id} | By={actor.id}")
    return request


# =====================================================================
# HARD DELETE
# =====================================================================
def delete(db: Session, actor, request_id: int):
    request = get_request(db, request_id)
    _require_requester_or_owner(db, actor, request)

    if db.query(Booking.id).filter(Booking.request_id == request.id).first():
        raise InvalidTransition("A booking already exists for this request; cancel it instead")

    try:
        db.delete(request)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Booking Request Deleted | Request={request_id} | By={actor.id}")


# =====================================================================
# READ SIDE
# =====================================================================
def list_for_venue(db: Session, actor, venue_id: int):
    venue = get_venue(db, venue_id)
    require_venue_owner(actor, venue, "view requests for this venue")

    return (
        db.query(BookingRequest)
        .filter(BookingRequest.venue_id == venue.id)
        .order_by(BookingRequest.created_at.desc())
        .all()
    )


def list_for_user(db: Session, actor):
    bookings = (
        db.query(Booking)
        .filter(Booking.user_id == actor.id, Booking.is_deleted == False)  # noqa: E712
        .order_by(Booking.event_date.desc())
        .all()
    )
    converted = {b.request_id for b in bookings if b.request_id is not None}

    requests = (
        db.query(BookingRequest)
        .filter(
            BookingRequest.user_id == actor.id,
            BookingRequest.status == RequestStatus.PENDING,
        )
        .order_by(BookingRequest.event_date.desc())
        .all()
    )
    return [r for r in requests if r.id not in converted], bookings
