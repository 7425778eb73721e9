from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from app.db.session import Base
from app.models.enums import BookingStatus, BookingPaymentStatus, BookingPeriod, enum_values
from app.models.mixins import EventBookingFields


class Booking(EventBookingFields, Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    # One booking per accepted request; NULL for owner-created bookings
    request_id = Column(Integer, ForeignKey("booking_requests.id"), unique=True, nullable=True)

    status = Column(
        Enum(BookingStatus, name="bookingstatus", values_callable=enum_values),
        nullable=False,
        default=BookingStatus.PENDING,
    )

    # Written only by the ledger
    payment_status = Column(
        Enum(BookingPaymentStatus, name="bookingpaymentstatus", values_callable=enum_values),
        nullable=False,
        default=BookingPaymentStatus.UNPAID,
    )
    last_payment_date = Column(DateTime(timezone=True), nullable=True)

    # Snapshot taken when the booking is created
    booking_period = Column(
        Enum(BookingPeriod, name="bookingperiod", values_callable=enum_values),
        nullable=False,
        default=BookingPeriod.FUTURE,
    )

    owner_notes = Column(String, nullable=False, default="")
    is_deleted = Column(Boolean, nullable=False, default=False)
