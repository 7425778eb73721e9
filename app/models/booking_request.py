from sqlalchemy import Column, Integer, Enum
from app.db.session import Base
from app.models.enums import RequestStatus, enum_values
from app.models.mixins import EventBookingFields


class BookingRequest(EventBookingFields, Base):
    __tablename__ = "booking_requests"

    id = Column(Integer, primary_key=True, index=True)

    status = Column(
        Enum(RequestStatus, name="requeststatus", values_callable=enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
    )
