from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.core.dependencies import Principal, get_current_principal, get_db
from app.schemas.payment import (
    PaymentDetailsCreate, PaymentInitiate, PaymentOut, PaymentRefund, PaymentVerify,
)
from app.services import ledger, notifications
from app.services.khalti import get_gateway

router = APIRouter(prefix="/payment", tags=["Payments"])


# =====================================================================
# INITIATE (Khalti)
# =====================================================================
@router.post("/initiate")
def initiate_payment(
    data: PaymentInitiate,
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    actor: Principal = Depends(get_current_principal),
):
    result = ledger.initiate(
        db,
        gateway,
        actor,
        data.booking_id,
        data.amount,
        expected_amount=data.expected_amount,
        purchase_order_id=data.purchase_order_id,
        purchase_order_name=data.purchase_order_name,
        return_url=data.return_url,
        website_url=data.website_url,
    )
    return {
        "success": True,
        "message": "Payment initiated",
        "payment": PaymentOut.model_validate(result.payment),
        "booking_synced": result.booking_synced,
        "khalti": result.gateway,
    }


# =====================================================================
# VERIFY
# =====================================================================
@router.post("/verify")
def verify_payment(
    data: PaymentVerify,
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    actor: Principal = Depends(get_current_principal),
):
    result = ledger.verify(db, gateway, data.pidx)

    if not result.completed:
        return {
            "success": False,
            "message": "Payment not completed yet.",
            "status": result.gateway_status,
        }

    return {
        "success": True,
        "message": "Payment verified successfully",
        "payment": PaymentOut.model_validate(result.payment),
        "booking_synced": result.booking_synced,
    }


# =====================================================================
# REFUND (venue owner)
# =====================================================================
@router.post("/refund")
def refund_payment(
    data: PaymentRefund,
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    actor: Principal = Depends(get_current_principal),
):
    result = ledger.refund(db, gateway, actor, data.pidx, data.refund_amount)
    return {
        "success": True,
        "message": "Refund processed successfully.",
        "refunded_amount": result.refunded_amount,
        "net_paid_after_refund": result.net_paid_after_refund,
        "booking_synced": result.booking_synced,
        "transaction_details": result.transaction_details,
    }


# =====================================================================
# ADVANCE PAYMENT SCHEDULE (venue owner)
# =====================================================================
@router.post("/details/{booking_id}", status_code=status.HTTP_201_CREATED)
def set_payment_details(
    booking_id: int,
    data: PaymentDetailsCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    notify = None
    if data.send_email:
        notify = notifications.schedule(background_tasks, notifications.payment_schedule_message)

    payment = ledger.set_payment_details(
        db,
        actor,
        booking_id,
        data.advance_amount,
        data.due_date,
        data.payment_instructions,
        notify=notify,
    )
    return {
        "success": True,
        "message": "Payment details saved",
        "payment": PaymentOut.model_validate(payment),
    }


# =====================================================================
# READ SIDE
# =====================================================================
@router.post("/received-amount")
def received_amount(
    data: PaymentVerify,
    gateway=Depends(get_gateway),
    actor: Principal = Depends(get_current_principal),
):
    return {"success": True, **ledger.received_amount(gateway, data.pidx)}


@router.get("/owner")
def owner_payments(
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    payments = ledger.list_owner_payments(db, actor)
    return {"success": True, "payments": [PaymentOut.model_validate(p) for p in payments]}
