from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3b1f0c9a2d47"
down_revision = None
branch_labels = None
depends_on = None


REQUEST_STATUS = ("Pending", "Accepted", "Rejected", "Cancelled")
BOOKING_STATUS = ("Pending", "Accepted", "Rejected", "Cancelled", "Running", "Completed")
BOOKING_PAYMENT_STATUS = ("Unpaid", "Partially Paid", "Paid", "Refunded")
PAYMENT_STATUS = ("Pending", "Completed", "Failed", "Refunded", "Partially Paid")
PAYMENT_TYPE = ("Advance", "Full")
BOOKING_PERIOD = ("Past", "Current", "Future")


def _event_booking_columns():
    return [
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venues.id"), nullable=False),
        sa.Column("hall_id", sa.Integer(), sa.ForeignKey("halls.id"), nullable=False),

        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),

        sa.Column("selected_foods", sa.JSON(), nullable=False),
        sa.Column("requested_foods", sa.JSON(), nullable=False),
        sa.Column("additional_services", sa.JSON(), nullable=False),

        sa.Column("original_per_plate_price", sa.Float(), nullable=False),
        sa.Column("user_offered_per_plate_price", sa.Float(), nullable=False),
        sa.Column("final_per_plate_price", sa.Float(), nullable=False),
        sa.Column("food_cost", sa.Float(), nullable=False),
        sa.Column("additional_services_cost", sa.Float(), nullable=False),
        sa.Column("total_cost", sa.Float(), nullable=False),
        sa.Column("discount_amount", sa.Float(), nullable=False),
        sa.Column("discount_reason", sa.String(), nullable=True),
        sa.Column("amount_paid", sa.Float(), nullable=False),
        sa.Column("balance_amount", sa.Float(), nullable=False),

        sa.Column("cancel_before_days", sa.Integer(), nullable=True),
        sa.Column("cancellation_fee", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    # 1️⃣ Reference rows
    op.create_table(
        "venues",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
    )
    op.create_index("ix_venues_id", "venues", ["id"])
    op.create_index("ix_venues_owner_id", "venues", ["owner_id"])

    op.create_table(
        "halls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venues.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_halls_id", "halls", ["id"])
    op.create_index("ix_halls_venue_id", "halls", ["venue_id"])

    # 2️⃣ Booking requests
    op.create_table(
        "booking_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_event_booking_columns(),
        sa.Column("status", sa.Enum(*REQUEST_STATUS, name="requeststatus"), nullable=False),
    )
    op.create_index("ix_booking_requests_id", "booking_requests", ["id"])
    op.create_index("ix_booking_requests_user_id", "booking_requests", ["user_id"])
    op.create_index("ix_booking_requests_venue_id", "booking_requests", ["venue_id"])

    # 3️⃣ Confirmed bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_id", sa.Integer(), sa.ForeignKey("booking_requests.id"), nullable=True, unique=True),
        *_event_booking_columns(),
        sa.Column("status", sa.Enum(*BOOKING_STATUS, name="bookingstatus"), nullable=False),
        sa.Column(
            "payment_status",
            sa.Enum(*BOOKING_PAYMENT_STATUS, name="bookingpaymentstatus"),
            nullable=False,
        ),
        sa.Column("last_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_period", sa.Enum(*BOOKING_PERIOD, name="bookingperiod"), nullable=False),
        sa.Column("owner_notes", sa.String(), nullable=False, server_default=""),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_venue_id", "bookings", ["venue_id"])

    # 4️⃣ Payment ledger, one row per booking
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cumulative_paid", sa.Float(), nullable=False, server_default="0"),
        sa.Column("expected_amount", sa.Float(), nullable=False),
        sa.Column("refund_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(), nullable=False, server_default="Khalti"),
        sa.Column("transaction_id", sa.String(), nullable=True, unique=True),
        sa.Column("payment_status", sa.Enum(*PAYMENT_STATUS, name="paymentstatus"), nullable=False),
        sa.Column("payment_type", sa.Enum(*PAYMENT_TYPE, name="paymenttype"), nullable=True),
        sa.Column("advance_amount", sa.Float(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("payment_instructions", sa.String(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])


def downgrade():
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("booking_requests")
    op.drop_table("halls")
    op.drop_table("venues")

    bind = op.get_bind()
    for name in (
        "paymenttype", "paymentstatus", "bookingperiod",
        "bookingpaymentstatus", "bookingstatus", "requeststatus",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)
