"""
Domain errors for the booking lifecycle and payment ledger.

Every error carries the HTTP status the API layer answers with and a
message that is safe to show to the end user.
"""
from typing import Any, Dict, Optional

from fastapi import status


class BookingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Booking operation failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return self.__class__.__name__


# ---------------- VALIDATION ----------------
class ValidationFailed(BookingError):
    default_message = "Invalid booking data"


class BelowMinimum(BookingError):
    default_message = "Payment amount is below the minimum allowed"


class OverPayment(BookingError):
    default_message = "Payment exceeds the amount owed for this booking"


class RefundExceedsNetPaid(BookingError):
    default_message = "Refund amount exceeds the amount available to refund"


class InvalidStatus(BookingError):
    default_message = "Invalid status value"


class DuplicateActiveBooking(BookingError):
    default_message = (
        "You have already booked this venue. "
        "Only one active booking per venue is allowed."
    )


# ---------------- AUTHORIZATION ----------------
class Forbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


# ---------------- NOT FOUND ----------------
class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


# ---------------- CONFLICTS ----------------
class AlreadyTerminal(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Booking request is already closed"


class InvalidTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "This status change is not allowed"


class DuplicatePayment(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Payment details already exist for this booking"


class NothingToRefund(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "No funds available to refund."


class PaymentNotCompleted(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Payment not completed yet."


# ---------------- GATEWAY ----------------
class GatewayRejected(BookingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment gateway rejected the request"


class GatewayUnreachable(BookingError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Payment gateway is not responding. Please try again."
