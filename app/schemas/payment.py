from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class PaymentInitiate(BaseModel):
    amount: float
    expected_amount: Optional[float] = None
    booking_id: int = Field(alias="bookingId")
    purchase_order_id: Optional[str] = None
    purchase_order_name: Optional[str] = None
    return_url: str
    website_url: str

    model_config = {"populate_by_name": True}


class PaymentVerify(BaseModel):
    pidx: str


class PaymentRefund(BaseModel):
    pidx: str
    refund_amount: Optional[float] = None


class PaymentDetailsCreate(BaseModel):
    advance_amount: float = Field(alias="advanceAmount", gt=0)
    due_date: date = Field(alias="dueDate")
    payment_instructions: str = Field(alias="paymentInstructions", min_length=1)
    send_email: bool = Field(default=False, alias="sendEmail")

    model_config = {"populate_by_name": True}


class PaymentOut(BaseModel):
    id: int
    booking_id: int
    user_id: int
    amount: float
    cumulative_paid: float
    expected_amount: float
    refund_amount: float
    net_paid: float
    payment_method: str
    transaction_id: Optional[str] = None
    payment_status: str
    payment_type: Optional[str] = None
    advance_amount: Optional[float] = None
    due_date: Optional[date] = None
    payment_instructions: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "use_enum_values": True}
