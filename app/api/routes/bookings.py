from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.core.dependencies import Principal, get_current_principal, get_db
from app.schemas.booking import (
    BookingOut, BookingProgress, BookingRequestCreate, BookingRequestOut,
    BookingRequestUpdate, BookingUpdate, OwnerBookingCreate, RequestDecision,
)
from app.schemas.payment import PaymentOut
from app.services import booking_conversion, booking_requests, bookings, notifications

router = APIRouter(prefix="/booking", tags=["Bookings"])


# =====================================================================
# BOOKING REQUESTS (user side)
# =====================================================================
@router.post("/create", status_code=status.HTTP_201_CREATED)
def create_booking_request(
    data: BookingRequestCreate,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    request = booking_requests.create(db, actor, data)
    return {
        "success": True,
        "message": "Booking request created",
        "booking": BookingRequestOut.from_row(request),
    }


@router.get("/my")
def my_bookings(
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    requests, confirmed = booking_requests.list_for_user(db, actor)
    return {
        "success": True,
        "requests": [BookingRequestOut.from_row(r) for r in requests],
        "bookings": [BookingOut.from_row(b) for b in confirmed],
    }


@router.put("/requests/{request_id}")
def update_booking_request(
    request_id: int,
    data: BookingRequestUpdate,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    request = booking_requests.update(db, actor, request_id, data)
    return {"success": True, "booking": BookingRequestOut.from_row(request)}


# ---------------------------------------------------------------------
# OWNER DECISION (Accepted / Rejected)
# ---------------------------------------------------------------------
@router.patch("/requests/{request_id}")
def decide_booking_request(
    request_id: int,
    data: RequestDecision,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    notify = notifications.schedule(background_tasks, notifications.decision_message)
    request, booking = booking_requests.decide(
        db, actor, request_id, data.status, data.reason, notify=notify,
    )
    return {
        "success": True,
        "message": f"Booking request {request.status.value.lower()}",
        "request": BookingRequestOut.from_row(request),
        "booking": BookingOut.from_row(booking) if booking else None,
    }


@router.post("/requests/{request_id}/cancel")
def cancel_booking_request(
    request_id: int,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    request = booking_requests.cancel(db, actor, request_id)
    return {
        "success": True,
        "message": "Booking request cancelled",
        "booking": BookingRequestOut.from_row(request),
    }


@router.delete("/requests/{request_id}")
def delete_booking_request(
    request_id: int,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    booking_requests.delete(db, actor, request_id)
    return {"success": True, "message": "Booking request deleted"}


# =====================================================================
# VENUE OWNER VIEWS
# =====================================================================
@router.get("/venue/{venue_id}/requests")
def venue_requests(
    venue_id: int,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    requests = booking_requests.list_for_venue(db, actor, venue_id)
    return {"success": True, "requests": [BookingRequestOut.from_row(r) for r in requests]}


@router.get("/venue/{venue_id}/bookings")
def venue_bookings(
    venue_id: int,
    period: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    return {"success": True, "bookings": bookings.list_venue_bookings(db, actor, venue_id, period)}


@router.post("/owner", status_code=status.HTTP_201_CREATED)
def create_owner_booking(
    data: OwnerBookingCreate,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    booking = booking_conversion.create_owner_booking(db, actor, data)
    return {"success": True, "message": "Booking created", "booking": BookingOut.from_row(booking)}


# =====================================================================
# CONFIRMED BOOKINGS
# =====================================================================
@router.get("/{booking_id}")
def booking_detail(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    booking, payment = bookings.get_booking_detail(db, actor, booking_id)
    return {
        "success": True,
        "booking": BookingOut.from_row(booking),
        "payment": PaymentOut.model_validate(payment) if payment else None,
    }


@router.put("/{booking_id}")
def update_booking(
    booking_id: int,
    data: BookingUpdate,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    booking = bookings.update_booking(db, actor, booking_id, data)
    return {"success": True, "booking": BookingOut.from_row(booking)}


@router.patch("/{booking_id}/progress")
def booking_progress(
    booking_id: int,
    data: BookingProgress,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    notify = notifications.schedule(background_tasks, notifications.completion_message)
    booking = bookings.set_progress(db, actor, booking_id, data.is_completed, notify=notify)
    return {
        "success": True,
        "message": f"Booking marked as {booking.status.value.lower()}",
        "booking": BookingOut.from_row(booking),
    }


@router.delete("/{booking_id}")
def soft_delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    bookings.soft_delete(db, actor, booking_id)
    return {"success": True, "message": "Booking deleted"}


@router.delete("/{booking_id}/hard")
def hard_delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    bookings.hard_delete(db, actor, booking_id)
    return {"success": True, "message": "Booking permanently deleted"}
