from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional


class AdditionalService(BaseModel):
    name: Optional[str] = None
    description: str = ""
    price: float = Field(default=0, ge=0)


class EventDetails(BaseModel):
    event_type: str
    date: date
    guest_count: int


class PricingIn(BaseModel):
    original_per_plate_price: float = Field(ge=0)
    user_offered_per_plate_price: Optional[float] = Field(default=None, ge=0)
    final_per_plate_price: Optional[float] = Field(default=None, ge=0)
    discount_amount: float = Field(default=0, ge=0)
    discount_reason: Optional[str] = None


class CancellationPolicy(BaseModel):
    cancel_before_days: Optional[int] = None
    cancellation_fee: float = 0


class BookingRequestCreate(BaseModel):
    venue: int
    hall: int
    event_details: EventDetails
    pricing: PricingIn
    selected_foods: List[int] = []
    requested_foods: List[int] = []
    additional_services: List[AdditionalService] = []
    cancellation_policy: Optional[CancellationPolicy] = None


class BookingRequestUpdate(BaseModel):
    event_details: Optional[EventDetails] = None
    pricing: Optional[PricingIn] = None
    selected_foods: Optional[List[int]] = None
    requested_foods: Optional[List[int]] = None
    additional_services: Optional[List[AdditionalService]] = None
    cancellation_policy: Optional[CancellationPolicy] = None


class RequestDecision(BaseModel):
    status: str
    reason: Optional[str] = None


class OwnerBookingCreate(BookingRequestCreate):
    user: Optional[int] = None
    owner_notes: Optional[str] = None


class BookingUpdate(BaseModel):
    guest_count: Optional[int] = None
    final_per_plate_price: Optional[float] = Field(default=None, ge=0)
    additional_services: Optional[List[AdditionalService]] = None
    discount_amount: Optional[float] = Field(default=None, ge=0)
    discount_reason: Optional[str] = None
    owner_notes: Optional[str] = None


class BookingProgress(BaseModel):
    is_completed: bool


# ---------------------------------------------------------------------
# OUTPUT
# ---------------------------------------------------------------------
class PricingOut(BaseModel):
    original_per_plate_price: float
    user_offered_per_plate_price: float
    final_per_plate_price: float
    food_cost: float
    additional_services_cost: float
    total_cost: float
    discount_amount: float
    discount_reason: Optional[str] = None
    amount_paid: float
    balance_amount: float


class BookingRequestOut(BaseModel):
    id: int
    user: int
    venue: int
    hall: int
    event_details: EventDetails
    selected_foods: List[int]
    requested_foods: List[int]
    additional_services: List[AdditionalService]
    pricing: PricingOut
    cancellation_policy: CancellationPolicy
    status: str
    reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row):
        return cls(**_common_fields(row), status=_value(row.status))


class BookingOut(BookingRequestOut):
    request_id: Optional[int] = None
    payment_status: str
    booking_period: str
    owner_notes: str
    is_deleted: bool
    last_payment_date: Optional[datetime] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            **_common_fields(row),
            status=_value(row.status),
            request_id=row.request_id,
            payment_status=_value(row.payment_status),
            booking_period=_value(row.booking_period),
            owner_notes=row.owner_notes or "",
            is_deleted=row.is_deleted,
            last_payment_date=row.last_payment_date,
        )


def _value(enum_or_str):
    return getattr(enum_or_str, "value", enum_or_str)


def _common_fields(row):
    # Flat ORM columns -> nested API shape
    return dict(
        id=row.id,
        user=row.user_id,
        venue=row.venue_id,
        hall=row.hall_id,
        event_details=EventDetails(
            event_type=row.event_type,
            date=row.event_date,
            guest_count=row.guest_count,
        ),
        selected_foods=row.selected_foods or [],
        requested_foods=row.requested_foods or [],
        additional_services=row.additional_services or [],
        pricing=PricingOut(
            original_per_plate_price=row.original_per_plate_price,
            user_offered_per_plate_price=row.user_offered_per_plate_price,
            final_per_plate_price=row.final_per_plate_price,
            food_cost=row.food_cost,
            additional_services_cost=row.additional_services_cost,
            total_cost=row.total_cost,
            discount_amount=row.discount_amount,
            discount_reason=row.discount_reason,
            amount_paid=row.amount_paid,
            balance_amount=row.balance_amount,
        ),
        cancellation_policy=CancellationPolicy(
            cancel_before_days=row.cancel_before_days,
            cancellation_fee=row.cancellation_fee or 0,
        ),
        reason=row.reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
