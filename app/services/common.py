from sqlalchemy.orm import Session

from app.core.exceptions import NotFound, Forbidden
from app.core.logging_config import booking_logger
from app.models.venue import Venue
from app.models.hall import Hall
from app.models.booking import Booking
from app.models.booking_request import BookingRequest
from app.models.enums import RequestStatus, CLOSED_BOOKING_STATUSES

logger = booking_logger()


def get_venue(db: Session, venue_id: int) -> Venue:
    venue = db.query(Venue).filter(Venue.id == venue_id).first()
    if not venue:
        raise NotFound("Venue not found")
    return venue


def get_hall(db: Session, venue_id: int, hall_id: int) -> Hall:
    hall = db.query(Hall).filter(Hall.id == hall_id).first()
    if not hall or hall.venue_id != venue_id:
        raise NotFound("Hall not found")
    return hall


def get_booking(db: Session, booking_id: int, include_deleted: bool = False) -> Booking:
    query = db.query(Booking).filter(Booking.id == booking_id)
    if not include_deleted:
        query = query.filter(Booking.is_deleted == False)  # noqa: E712
    booking = query.first()
    if not booking:
        raise NotFound("Booking not found")
    return booking


def owns_venue(actor, venue: Venue) -> bool:
    return actor.is_admin or (actor.role == "owner" and venue.owner_id == actor.id)


def require_venue_owner(actor, venue: Venue, action: str = "manage this venue"):
    if not owns_venue(actor, venue):
        raise Forbidden(f"Not authorized to {action}")


def run_notifier(notify, *args):
    """Call a best-effort notifier; its failures never reach the caller."""
    if notify is None:
        return
    try:
        notify(*args)
    except Exception as e:
        logger.error(f"Notification failed | {e}")


def has_active_booking(db: Session, user_id: int, venue_id: int, exclude_request_id: int | None = None) -> bool:
    """True when (user, venue) already holds a live request or booking."""
    requests = db.query(BookingRequest).filter(
        BookingRequest.user_id == user_id,
        BookingRequest.venue_id == venue_id,
        BookingRequest.status.in_([RequestStatus.PENDING, RequestStatus.ACCEPTED]),
    )
    if exclude_request_id is not None:
        requests = requests.filter(BookingRequest.id != exclude_request_id)

    for request in requests.all():
        if request.status == RequestStatus.PENDING:
            return True
        booking = db.query(Booking).filter(Booking.request_id == request.id).first()
        if booking is None or (not booking.is_deleted and booking.status not in CLOSED_BOOKING_STATUSES):
            return True

    owner_booking = db.query(Booking.id).filter(
        Booking.user_id == user_id,
        Booking.venue_id == venue_id,
        Booking.request_id.is_(None),
        Booking.is_deleted == False,  # noqa: E712
        Booking.status.notin_(CLOSED_BOOKING_STATUSES),
    ).first()
    return owner_booking is not None
