"""Shared test configuration and fixtures for backend tests.

Key principles:
- All HTTP calls go through the local ASGI app (httpx.AsyncClient + ASGITransport).
- Services are wired to in-memory repositories and a local Stripe double via
  app.dependency_overrides; only tests that ask for `test_db` need MongoDB.
- AnyIO is the single async runner via the pytest plugin (@pytest.mark.anyio).
"""

from typing import Any, AsyncGenerator, Awaitable, Callable, Dict

import os
import sys
import uuid
from datetime import timedelta
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport

# Ensure backend root is on sys.path so that `server` module is importable
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("AUDIT_HMAC_SECRET", "test_audit_secret")
os.environ.setdefault("ENSURE_INDEXES", "false")

from server import app  # noqa: E402
from wheels.dependencies import (  # noqa: E402
    get_admin_actions_service,
    get_audit_service,
    get_booking_request_service,
    get_payment_service,
    get_trip_offer_service,
)
from wheels.domain.booking_request import BookingRequest  # noqa: E402
from wheels.domain.trip_offer import TripOffer  # noqa: E402
from wheels.services.admin_actions import AdminActionsService  # noqa: E402
from wheels.services.audit_service import AuditService  # noqa: E402
from wheels.services.booking_request_service import BookingRequestService  # noqa: E402
from wheels.services.payment_service import PaymentService  # noqa: E402
from wheels.services.trip_offer_service import TripOfferService  # noqa: E402
from wheels.utils import now_utc  # noqa: E402

from fakes import (  # noqa: E402
    ADMIN_ID,
    DRIVER_ID,
    PASSENGER_ID,
    bearer,
    FakeAuditAnchorRepository,
    FakeAuditLogRepository,
    FakeBookingRequestRepository,
    FakeStripeProvider,
    FakeTransactionRepository,
    FakeTripOfferRepository,
)

MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""

    return "asyncio"


@pytest.fixture
def trips() -> FakeTripOfferRepository:
    return FakeTripOfferRepository()


@pytest.fixture
def bookings() -> FakeBookingRequestRepository:
    return FakeBookingRequestRepository()


@pytest.fixture
def transactions() -> FakeTransactionRepository:
    return FakeTransactionRepository()


@pytest.fixture
def audit_logs() -> FakeAuditLogRepository:
    return FakeAuditLogRepository()


@pytest.fixture
def audit_anchors() -> FakeAuditAnchorRepository:
    return FakeAuditAnchorRepository()


@pytest.fixture
def provider() -> FakeStripeProvider:
    return FakeStripeProvider()


@pytest.fixture
def payment_service(bookings, trips, transactions, provider) -> PaymentService:
    return PaymentService(bookings, trips, transactions, provider, currency="COP")


@pytest.fixture
def booking_service(bookings, trips) -> BookingRequestService:
    return BookingRequestService(bookings, trips)


@pytest.fixture
def trip_service(trips) -> TripOfferService:
    return TripOfferService(trips)


@pytest.fixture
def audit_service(audit_logs, audit_anchors) -> AuditService:
    return AuditService(audit_logs, audit_anchors, secret="test_audit_secret")


@pytest.fixture
def admin_service(bookings, transactions, provider, audit_service) -> AdminActionsService:
    return AdminActionsService(bookings, transactions, provider, audit_service)


@pytest.fixture
def make_trip(trips) -> Callable[..., Awaitable[TripOffer]]:
    async def _make(**overrides: Any) -> TripOffer:
        departure = now_utc() + timedelta(days=1)
        data: Dict[str, Any] = {
            "driver_id": DRIVER_ID,
            "origin": {"text": "Campus Puente del Común", "geo": {"lat": 4.861, "lng": -74.032}},
            "destination": {"text": "Portal Norte", "geo": {"lat": 4.754, "lng": -74.046}},
            "departure_at": departure,
            "estimated_arrival_at": departure + timedelta(minutes=45),
            "price_per_seat": 8000,
            "total_seats": 3,
        }
        data.update(overrides)
        return await trips.create(TripOffer(**data))

    return _make


@pytest.fixture
def make_booking(bookings) -> Callable[..., Awaitable[BookingRequest]]:
    async def _make(trip: TripOffer, **overrides: Any) -> BookingRequest:
        data: Dict[str, Any] = {"trip_id": str(trip.id), "passenger_id": PASSENGER_ID, "seats": 2}
        data.update(overrides)
        return await bookings.create(BookingRequest(**data))

    return _make


@pytest.fixture
def passenger_headers() -> Dict[str, str]:
    return bearer(PASSENGER_ID, "passenger")


@pytest.fixture
def driver_headers() -> Dict[str, str]:
    return bearer(DRIVER_ID, "driver")


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return bearer(ADMIN_ID, "admin")


@pytest.fixture
async def app_with_fakes(
    payment_service, booking_service, trip_service, audit_service, admin_service
) -> AsyncGenerator[Any, None]:
    """FastAPI app whose service dependencies use the in-memory doubles."""

    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_booking_request_service] = lambda: booking_service
    app.dependency_overrides[get_trip_offer_service] = lambda: trip_service
    app.dependency_overrides[get_audit_service] = lambda: audit_service
    app.dependency_overrides[get_admin_actions_service] = lambda: admin_service
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_fakes) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = ASGITransport(app=app_with_fakes)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def test_db() -> AsyncGenerator[Any, None]:
    """Function-scoped isolated MongoDB database, dropped on teardown.

    Skips the test when no server answers at MONGO_URL.
    """

    from motor.motor_asyncio import AsyncIOMotorClient
    from pymongo.errors import ServerSelectionTimeoutError

    client = AsyncIOMotorClient(MONGO_URL, serverSelectionTimeoutMS=1000, tz_aware=True)
    try:
        await client.admin.command("ping")
    except ServerSelectionTimeoutError:
        client.close()
        pytest.skip(f"MongoDB not reachable at {MONGO_URL}")

    db_name = f"wheels_test_{uuid.uuid4().hex}"
    try:
        yield client[db_name]
    finally:
        await client.drop_database(db_name)
        client.close()
