from enum import Enum


class RequestStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class BookingStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    RUNNING = "Running"
    COMPLETED = "Completed"


class BookingPaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    REFUNDED = "Refunded"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PARTIALLY_PAID = "Partially Paid"


class PaymentType(str, Enum):
    ADVANCE = "Advance"
    FULL = "Full"


class BookingPeriod(str, Enum):
    PAST = "Past"
    CURRENT = "Current"
    FUTURE = "Future"


# Request states that free the (user, venue) slot
TERMINAL_REQUEST_STATUSES = (RequestStatus.REJECTED, RequestStatus.CANCELLED)

# Booking states that no longer hold the (user, venue) slot
CLOSED_BOOKING_STATUSES = (
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.REJECTED,
)


def enum_values(enum_cls):
    """Persist enum values ("Partially Paid") rather than member names."""
    return [member.value for member in enum_cls]
