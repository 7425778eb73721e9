from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.models.enums import PaymentStatus, PaymentType, enum_values
from app.models.mixins import utcnow


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)

    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    user_id = Column(Integer, nullable=False, index=True)

    # Last partial payment, running total, full amount owed
    amount = Column(Float, nullable=False, default=0.0)
    cumulative_paid = Column(Float, nullable=False, default=0.0)
    expected_amount = Column(Float, nullable=False)
    refund_amount = Column(Float, nullable=False, default=0.0)

    payment_method = Column(String, nullable=False, default="Khalti")
    transaction_id = Column(String, unique=True, nullable=True)  # gateway pidx

    payment_status = Column(
        Enum(PaymentStatus, name="paymentstatus", values_callable=enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_type = Column(
        Enum(PaymentType, name="paymenttype", values_callable=enum_values),
        nullable=True,
    )

    # Advance schedule set by the venue owner
    advance_amount = Column(Float, nullable=True)
    due_date = Column(Date, nullable=True)
    payment_instructions = Column(String, nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking")

    @property
    def net_paid(self) -> float:
        return round((self.cumulative_paid or 0.0) - (self.refund_amount or 0.0), 2)
