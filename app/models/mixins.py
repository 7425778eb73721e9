from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Date, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import declared_attr


def utcnow():
    return datetime.now(timezone.utc)


class EventBookingFields:
    """Columns shared by booking requests and confirmed bookings."""

    user_id = Column(Integer, nullable=False, index=True)
    contact_email = Column(String, nullable=True)

    @declared_attr
    def venue_id(cls):
        return Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)

    @declared_attr
    def hall_id(cls):
        return Column(Integer, ForeignKey("halls.id"), nullable=False)

    # Event details
    event_type = Column(String, nullable=False)
    event_date = Column(Date, nullable=False)
    guest_count = Column(Integer, nullable=False)

    # Food ids and extras
    selected_foods = Column(JSON, nullable=False, default=list)
    requested_foods = Column(JSON, nullable=False, default=list)
    additional_services = Column(JSON, nullable=False, default=list)

    # Pricing (major currency units)
    original_per_plate_price = Column(Float, nullable=False)
    user_offered_per_plate_price = Column(Float, nullable=False)
    final_per_plate_price = Column(Float, nullable=False)
    food_cost = Column(Float, nullable=False, default=0.0)
    additional_services_cost = Column(Float, nullable=False, default=0.0)
    total_cost = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    discount_reason = Column(String, nullable=True)
    amount_paid = Column(Float, nullable=False, default=0.0)
    balance_amount = Column(Float, nullable=False, default=0.0)

    # Cancellation policy
    cancel_before_days = Column(Integer, nullable=True)
    cancellation_fee = Column(Float, nullable=False, default=0.0)

    reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
