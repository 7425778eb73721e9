from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType

from app.core import config
from app.core.logging_config import booking_logger

logger = booking_logger()


def get_mail_config():
    if not config.MAIL_USERNAME:
        return None

    return ConnectionConfig(
        MAIL_USERNAME=config.MAIL_USERNAME,
        MAIL_PASSWORD=config.MAIL_PASSWORD,
        MAIL_FROM=config.MAIL_FROM,
        MAIL_PORT=config.MAIL_PORT,
        MAIL_SERVER=config.MAIL_SERVER,
        MAIL_FROM_NAME=config.MAIL_FROM_NAME,
        MAIL_STARTTLS=True,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=True,
        VALIDATE_CERTS=True,
    )


async def send_email(recipient: str, subject: str, html: str):
    conf = get_mail_config()
    if conf is None or not recipient:
        logger.info(f"Mail skipped | to={recipient} | subject={subject}")
        return

    message = MessageSchema(
        subject=subject,
        recipients=[recipient],
        body=html,
        subtype=MessageType.html,
    )
    try:
        await FastMail(conf).send_message(message)
        logger.info(f"Mail sent | to={recipient} | subject={subject}")
    except Exception as e:
        # Delivery is best-effort; the booking state is already committed
        logger.error(f"Mail failed | to={recipient} | subject={subject} | {e}")


# ---------------------------------------------------------------------
# MESSAGE BUILDERS
# ---------------------------------------------------------------------
def decision_message(request, venue_name: str):
    status = getattr(request.status, "value", request.status)

    if status == "Accepted":
        subject = "Your Booking Request has been Approved!"
        html = f"""
        <html><body style="font-family: Arial, sans-serif;">
          <h2 style="color: #2e7d32;">Booking Request Approved</h2>
          <p>Your booking request has been <strong>approved</strong> by <strong>{venue_name}</strong>.</p>
          <ul>
            <li><strong>Event Type:</strong> {request.event_type}</li>
            <li><strong>Date:</strong> {request.event_date.isoformat()}</li>
            <li><strong>Guests:</strong> {request.guest_count}</li>
          </ul>
          <p>The venue will contact you shortly with payment details.</p>
        </body></html>
        """
    else:
        subject = "Update on Your Booking Request"
        html = f"""
        <html><body style="font-family: Arial, sans-serif;">
          <h2 style="color: #d32f2f;">Booking Request Not Approved</h2>
          <p>Your booking request for <strong>{venue_name}</strong> could not be approved.</p>
          <h4>Reason</h4>
          <p>{request.reason}</p>
        </body></html>
        """
    return subject, html


def completion_message(booking, venue_name: str):
    review_url = f"{config.FRONTEND_URL}/review/{booking.id}"
    subject = "Event Completed - Share Your Experience!"
    html = f"""
    <html><body style="font-family: Arial, sans-serif;">
      <h2 style="color: #2e7d32;">Event Completed Successfully!</h2>
      <p>Your event at <strong>{venue_name}</strong> has been marked as completed.</p>
      <p><a href="{review_url}">Share Your Review</a></p>
    </body></html>
    """
    return subject, html


def payment_schedule_message(booking, payment, venue_name: str):
    subject = "Venue Booking Confirmation and Payment Details"
    html = f"""
    <html><body style="font-family: Arial, sans-serif;">
      <h2>Booking Confirmed at {venue_name}</h2>
      <p>Total cost: Rs. {booking.total_cost}</p>
      <p>Advance due: Rs. {payment.advance_amount} on or before {payment.due_date.isoformat()}</p>
      <p>{payment.payment_instructions}</p>
      <p><strong>Please complete the advance payment before the due date to confirm your booking.</strong></p>
    </body></html>
    """
    return subject, html


# ---------------------------------------------------------------------
# BACKGROUND-TASK NOTIFIERS
# ---------------------------------------------------------------------
def schedule(background_tasks, builder):
    """Wrap a message builder into a ``notify(*args)`` callable for services."""

    def notify(recipient, *args):
        subject, html = builder(*args)
        background_tasks.add_task(send_email, recipient, subject, html)

    return notify
