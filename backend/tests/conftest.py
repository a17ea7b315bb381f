# backend/tests/conftest.py
"""
Shared fixtures.

Each test gets its own file-backed SQLite database so worker threads in the
concurrency tests can open independent sessions against the same data.
"""

from datetime import date, time
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from homeservice.api.dependencies.database import get_db
from homeservice.auth import create_actor_token
from homeservice.core.actor import Actor
from homeservice.core.enums import BookingStatus, PaymentStatus
from homeservice.database import build_engine, init_db
from homeservice.main import app
from homeservice.models.booking import Booking
from homeservice.models.provider import Provider
from homeservice.models.review import Review
from homeservice.repositories.provider_repository import ProviderRepository

CUSTOMER_ID = "cust_alice"
OTHER_CUSTOMER_ID = "cust_bob"
ADMIN_ID = "admin_root"

PLUMBING_SERVICES = [
    {"name": "General plumbing", "category_id": "plumbing", "hourly_rate": "40.00"},
]


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'homeservice_test.db'}")
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def customer() -> Actor:
    return Actor.customer(CUSTOMER_ID)


@pytest.fixture
def other_customer() -> Actor:
    return Actor.customer(OTHER_CUSTOMER_ID)


@pytest.fixture
def admin() -> Actor:
    return Actor.admin(ADMIN_ID)


@pytest.fixture
def make_provider(db: Session) -> Callable[..., Provider]:
    def _make(
        services: Iterable[Dict[str, Any]] = PLUMBING_SERVICES,
        full_name: str = "Pat Plumber",
    ) -> Provider:
        provider = ProviderRepository(db).create_provider(full_name=full_name, services=list(services))
        db.commit()
        return provider

    return _make


@pytest.fixture
def provider(make_provider: Callable[..., Provider]) -> Provider:
    return make_provider()


@pytest.fixture
def provider_actor(provider: Provider) -> Actor:
    return Actor.provider(provider.id)


@pytest.fixture
def make_booking(db: Session) -> Callable[..., Booking]:
    """Insert a booking directly, bypassing capability checks."""

    def _make(
        provider: Provider,
        customer_id: str = CUSTOMER_ID,
        status: BookingStatus = BookingStatus.PENDING,
        category_id: str = "plumbing",
        subcategory_id: Optional[str] = None,
    ) -> Booking:
        booking = Booking(
            customer_id=customer_id,
            provider_id=provider.id,
            category_id=category_id,
            subcategory_id=subcategory_id,
            booking_date=date(2026, 11, 2),
            start_time=time(9, 0),
            duration_hours=Decimal("2"),
            estimated_hours=Decimal("2"),
            total_price=Decimal("80.00"),
            status=status.value,
            payment_status=PaymentStatus.PENDING.value,
            customer_full_name="Alice Customer",
            customer_phone="555-0100",
            customer_location="12 Elm Street",
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def completed_booking(make_booking: Callable[..., Booking], provider: Provider) -> Booking:
    return make_booking(provider, status=BookingStatus.COMPLETED)


@pytest.fixture
def make_review(db: Session) -> Callable[..., Review]:
    """Insert a review row without going through the aggregator."""

    def _make(booking: Booking, rating: int, comment: str = "Fine work") -> Review:
        review = Review(
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            booking_id=booking.id,
            rating=rating,
            comment=comment,
        )
        db.add(review)
        db.commit()
        return review

    return _make


def auth_headers_for(actor: Actor) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_actor_token(actor)}"}


@pytest.fixture
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    """Create a test client where every request gets its own session on the test database."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    # Don't use context manager - create directly
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
