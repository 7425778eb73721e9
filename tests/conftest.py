import os
import tempfile
from datetime import date, timedelta

# Configure before any app import reads the environment
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_DIR"] = os.path.join(tempfile.gettempdir(), "venue-booking-test-logs")
os.environ.pop("REDIS_URL", None)
os.environ.pop("MAIL_USERNAME", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.dependencies import Principal, get_db
from app.core.exceptions import GatewayUnreachable
from app.core.jwt import create_access_token
from app.db.base import Base
from app.main import app
from app.models.hall import Hall
from app.models.venue import Venue
from app.schemas.booking import (
    AdditionalService, BookingRequestCreate, EventDetails, OwnerBookingCreate, PricingIn,
)
from app.services import booking_requests
from app.services.khalti import GatewayLookup, GatewayPayment, get_gateway

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

OWNER_ID = 10
USER_ID = 1


# ---------------------------------------------------------------------
# FAKE KHALTI
# ---------------------------------------------------------------------
class FakeGateway:
    """In-process stand-in for Khalti; pidx statuses are set by the test."""

    def __init__(self):
        self.statuses = {}
        self.amounts = {}
        self.initiated = []
        self.error = None

    def initiate(self, amount_minor, purchase_order_id, purchase_order_name, return_url, website_url):
        if self.error is not None:
            raise self.error
        pidx = f"pidx-{len(self.initiated) + 1}"
        self.initiated.append((pidx, amount_minor, purchase_order_id))
        self.amounts[pidx] = amount_minor
        self.statuses.setdefault(pidx, "Pending")
        return GatewayPayment(
            pidx=pidx,
            payment_url=f"https://pay.khalti.test/{pidx}",
            raw={"pidx": pidx, "payment_url": f"https://pay.khalti.test/{pidx}"},
        )

    def lookup(self, pidx):
        if self.error is not None:
            raise self.error
        status = self.statuses.get(pidx, "Pending")
        return GatewayLookup(
            pidx=pidx,
            status=status,
            total_amount_minor=self.amounts.get(pidx, 0),
            raw={"pidx": pidx, "status": status, "total_amount": self.amounts.get(pidx, 0)},
        )

    def complete(self, pidx):
        self.statuses[pidx] = "Completed"

    def go_offline(self):
        self.error = GatewayUnreachable()


# ---------------------------------------------------------------------
# DATABASE
# ---------------------------------------------------------------------
@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def venue(db):
    venue = Venue(owner_id=OWNER_ID, name="Lakeside Banquet", location="Pokhara")
    db.add(venue)
    db.commit()
    db.refresh(venue)
    return venue


@pytest.fixture
def hall(db, venue):
    hall = Hall(venue_id=venue.id, name="Main Hall", capacity=300)
    db.add(hall)
    db.commit()
    db.refresh(hall)
    return hall


# ---------------------------------------------------------------------
# ACTORS
# ---------------------------------------------------------------------
@pytest.fixture
def user():
    return Principal(id=USER_ID, role="user", email="guest@example.com")


@pytest.fixture
def other_user():
    return Principal(id=2, role="user", email="other@example.com")


@pytest.fixture
def owner():
    return Principal(id=OWNER_ID, role="owner", email="owner@example.com")


@pytest.fixture
def admin():
    return Principal(id=99, role="admin", email="admin@example.com")


# ---------------------------------------------------------------------
# PAYLOAD BUILDERS
# ---------------------------------------------------------------------
@pytest.fixture
def make_request_data(venue, hall):
    def build(guests=10, per_plate=500, services=None, discount=0, event_date=None, cls=BookingRequestCreate, **extra):
        return cls(
            venue=venue.id,
            hall=hall.id,
            event_details=EventDetails(
                event_type="Wedding",
                date=event_date or date.today() + timedelta(days=30),
                guest_count=guests,
            ),
            pricing=PricingIn(original_per_plate_price=per_plate, discount_amount=discount),
            selected_foods=[1, 2],
            additional_services=[AdditionalService(**s) for s in (services if services is not None else [{"name": "Decor", "price": 200}])],
            **extra,
        )

    return build


@pytest.fixture
def make_owner_booking_data(make_request_data):
    def build(**kwargs):
        return make_request_data(cls=OwnerBookingCreate, **kwargs)

    return build


@pytest.fixture
def confirmed_booking(db, user, owner, make_request_data):
    """Accepted request for 10 guests at 500/plate plus a 200 service (total 5200)."""
    request = booking_requests.create(db, user, make_request_data())
    _, booking = booking_requests.decide(db, owner, request.id, "Accepted")
    return booking


# ---------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------
@pytest.fixture
def client(db, gateway):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(principal):
    token = create_access_token({"sub": principal.email, "role": principal.role, "id": principal.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers
