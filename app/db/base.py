# Import every model so Base.metadata is complete (alembic, create_all)
from app.db.session import Base  # noqa: F401
from app.models.venue import Venue  # noqa: F401
from app.models.hall import Hall  # noqa: F401
from app.models.booking_request import BookingRequest  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.payment import Payment  # noqa: F401
