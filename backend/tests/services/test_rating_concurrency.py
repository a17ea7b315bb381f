"""
Concurrent review mutations for one provider must converge on the exact
aggregate of every committed review.
"""

from decimal import Decimal
import threading

from sqlalchemy import select

from homeservice.core.actor import Actor
from homeservice.core.enums import BookingStatus
from homeservice.models.event_outbox import RATING_RECOMPUTE_EVENT
from homeservice.models.provider import Provider
from homeservice.models.review import Review
from homeservice.repositories.event_outbox_repository import EventOutboxRepository
from homeservice.services.rating_aggregator import RatingAggregator
from homeservice.services.ratings_math import average_rating
from homeservice.services.review_service import ReviewService


def _run_concurrently(session_factory, operations):
    """Run each ``operation(service)`` on its own thread and session, released together."""
    barrier = threading.Barrier(len(operations))
    errors = []

    def worker(operation):
        session = session_factory()
        try:
            service = ReviewService(session, RatingAggregator(session, sleep=lambda _s: None))
            barrier.wait(timeout=5)
            operation(service)
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(operation,)) for operation in operations]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return errors


def _submit(customer_id, booking_id, rating):
    def operation(service):
        service.create_review(
            Actor.customer(customer_id), booking_id, rating=rating, comment=f"{rating} stars"
        )

    return operation


def _rerate(customer_id, review_id, rating):
    def operation(service):
        service.update_review(Actor.customer(customer_id), review_id, rating=rating)

    return operation


def _withdraw(customer_id, review_id):
    def operation(service):
        service.delete_review(Actor.customer(customer_id), review_id)

    return operation


def test_three_simultaneous_reviews_converge(session_factory, make_booking, provider):
    bookings = [
        make_booking(provider, customer_id=f"cust_{n}", status=BookingStatus.COMPLETED)
        for n in range(3)
    ]
    operations = [
        _submit(booking.customer_id, booking.id, rating) for booking, rating in zip(bookings, (5, 4, 5))
    ]

    errors = _run_concurrently(session_factory, operations)
    assert errors == []

    session = session_factory()
    try:
        stored = session.get(Provider, provider.id)
        assert stored.average_rating == Decimal("4.7")
        assert stored.total_reviews == 3
        assert EventOutboxRepository(session).count_pending(RATING_RECOMPUTE_EVENT, provider.id) == 0
    finally:
        session.close()


def test_mixed_create_update_delete_converge(
    db, session_factory, make_booking, make_review, provider
):
    existing = [
        make_review(
            make_booking(provider, customer_id=f"cust_old_{n}", status=BookingStatus.COMPLETED), rating
        )
        for n, rating in enumerate((3, 4, 5))
    ]
    RatingAggregator(db).recompute_provider_rating(provider.id)
    fresh = [
        make_booking(provider, customer_id=f"cust_new_{n}", status=BookingStatus.COMPLETED)
        for n in range(2)
    ]

    errors = _run_concurrently(
        session_factory,
        [
            _submit(fresh[0].customer_id, fresh[0].id, 5),
            _submit(fresh[1].customer_id, fresh[1].id, 2),
            _rerate(existing[0].customer_id, existing[0].id, 1),
            _withdraw(existing[1].customer_id, existing[1].id),
        ],
    )
    assert errors == []

    session = session_factory()
    try:
        ratings = session.scalars(select(Review.rating).where(Review.provider_id == provider.id)).all()
        assert sorted(ratings) == [1, 2, 5, 5]

        stored = session.get(Provider, provider.id)
        assert stored.total_reviews == len(ratings)
        assert stored.average_rating == average_rating(sum(ratings), len(ratings))
        assert stored.average_rating == Decimal("3.3")
        assert EventOutboxRepository(session).count_pending(RATING_RECOMPUTE_EVENT, provider.id) == 0
    finally:
        session.close()


def test_reviews_for_different_providers_do_not_interfere(session_factory, make_booking, make_provider):
    first = make_provider(full_name="First Pro")
    second = make_provider(full_name="Second Pro")
    a = make_booking(first, customer_id="cust_a", status=BookingStatus.COMPLETED)
    b = make_booking(second, customer_id="cust_b", status=BookingStatus.COMPLETED)

    errors = _run_concurrently(
        session_factory, [_submit(a.customer_id, a.id, 2), _submit(b.customer_id, b.id, 5)]
    )
    assert errors == []

    session = session_factory()
    try:
        assert session.get(Provider, first.id).average_rating == Decimal("2.0")
        assert session.get(Provider, second.id).average_rating == Decimal("5.0")
    finally:
        session.close()
