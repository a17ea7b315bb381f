"""
ReviewService tests: review lifecycle and the provider aggregate it drives.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from homeservice.core.actor import Actor
from homeservice.core.enums import BookingStatus
from homeservice.core.exceptions import (
    DuplicateReviewException,
    NotCompletedException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from homeservice.models.event_outbox import RATING_RECOMPUTE_EVENT, EventOutbox
from homeservice.models.provider import Provider
from homeservice.repositories.event_outbox_repository import EventOutboxRepository
from homeservice.repositories.provider_repository import ProviderRepository
from homeservice.services.rating_aggregator import RatingAggregator
from homeservice.services.review_service import ReviewService


def _no_sleep(_seconds):
    return None


@pytest.fixture
def service(db):
    return ReviewService(db, RatingAggregator(db, sleep=_no_sleep))


def _stored_rating(session_factory, provider_id):
    session = session_factory()
    try:
        provider = session.get(Provider, provider_id)
        return provider.average_rating, provider.total_reviews
    finally:
        session.close()


def _pending(session_factory, provider_id):
    session = session_factory()
    try:
        return EventOutboxRepository(session).count_pending(RATING_RECOMPUTE_EVENT, provider_id)
    finally:
        session.close()


class TestCreateReview:
    def test_review_updates_provider_aggregate(self, service, session_factory, completed_booking, customer):
        review = service.create_review(customer, completed_booking.id, rating=4, comment="  Tidy work  ")

        assert review.comment == "Tidy work"
        assert review.provider_id == completed_booking.provider_id
        assert _stored_rating(session_factory, completed_booking.provider_id) == (Decimal("4.0"), 1)
        assert _pending(session_factory, completed_booking.provider_id) == 0

    def test_duplicate_review_is_rejected(self, service, session_factory, completed_booking, customer):
        service.create_review(customer, completed_booking.id, rating=5, comment="Great")

        with pytest.raises(DuplicateReviewException) as exc_info:
            service.create_review(customer, completed_booking.id, rating=1, comment="Changed my mind")

        assert exc_info.value.code == "DUPLICATE_REVIEW"
        assert _stored_rating(session_factory, completed_booking.provider_id) == (Decimal("5.0"), 1)

    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
    def test_booking_must_be_completed(self, service, make_booking, provider, customer, status):
        booking = make_booking(provider, status=status)

        with pytest.raises(NotCompletedException):
            service.create_review(customer, booking.id, rating=5, comment="Early")

    def test_only_owning_customer_may_review(
        self, service, completed_booking, other_customer, provider_actor, admin
    ):
        for actor in (other_customer, provider_actor, admin):
            with pytest.raises(UnauthorizedException):
                service.create_review(actor, completed_booking.id, rating=5, comment="Nice")

    def test_provider_must_match_booking(self, service, completed_booking, make_provider, customer):
        other = make_provider(full_name="Someone Else")

        with pytest.raises(ValidationException):
            service.create_review(
                customer, completed_booking.id, rating=5, comment="Nice", provider_id=other.id
            )

    @pytest.mark.parametrize("rating", [0, 6, True, None])
    def test_rating_out_of_range(self, service, completed_booking, customer, rating):
        with pytest.raises(ValidationException):
            service.create_review(customer, completed_booking.id, rating=rating, comment="Hmm")

    @pytest.mark.parametrize("comment", ["", "   ", "x" * 501])
    def test_comment_validation(self, service, completed_booking, customer, comment):
        with pytest.raises(ValidationException):
            service.create_review(customer, completed_booking.id, rating=3, comment=comment)

    def test_unknown_booking(self, service, customer):
        with pytest.raises(NotFoundException):
            service.create_review(customer, "missing", rating=3, comment="Hmm")


class TestReviewLifecycle:
    def test_delete_drives_aggregate_down(
        self, service, session_factory, make_booking, provider, customer
    ):
        first = make_booking(provider, status=BookingStatus.COMPLETED)
        second = make_booking(provider, status=BookingStatus.COMPLETED)
        service.create_review(customer, first.id, rating=5, comment="Great")
        review = service.create_review(customer, second.id, rating=2, comment="Late")
        assert _stored_rating(session_factory, provider.id) == (Decimal("3.5"), 2)

        service.delete_review(customer, review.id)

        assert _stored_rating(session_factory, provider.id) == (Decimal("5.0"), 1)

    def test_deleting_last_review_resets_to_zero(self, service, session_factory, completed_booking, customer):
        review = service.create_review(customer, completed_booking.id, rating=3, comment="Okay")

        service.delete_review(customer, review.id)

        assert _stored_rating(session_factory, completed_booking.provider_id) == (Decimal("0.0"), 0)

    def test_rating_change_recomputes(self, service, session_factory, completed_booking, customer):
        review = service.create_review(customer, completed_booking.id, rating=2, comment="Meh")

        updated = service.update_review(customer, review.id, rating=5)

        assert updated.rating == 5
        assert _stored_rating(session_factory, completed_booking.provider_id) == (Decimal("5.0"), 1)

    def test_comment_only_change_enqueues_nothing(self, service, session_factory, completed_booking, customer):
        review = service.create_review(customer, completed_booking.id, rating=4, comment="Good")

        service.update_review(customer, review.id, comment="Good, would book again")

        session = session_factory()
        try:
            assert session.query(EventOutbox).count() == 1
        finally:
            session.close()

    def test_stranger_cannot_edit_or_delete(self, service, completed_booking, customer, other_customer, provider_actor):
        review = service.create_review(customer, completed_booking.id, rating=4, comment="Good")

        for actor in (other_customer, provider_actor):
            with pytest.raises(UnauthorizedException):
                service.update_review(actor, review.id, rating=1)
            with pytest.raises(UnauthorizedException):
                service.delete_review(actor, review.id)

    def test_admin_can_delete(self, service, session_factory, completed_booking, customer, admin):
        review = service.create_review(customer, completed_booking.id, rating=4, comment="Good")

        service.delete_review(admin, review.id)

        assert _stored_rating(session_factory, completed_booking.provider_id) == (Decimal("0.0"), 0)

    def test_list_and_rating_reads(self, service, completed_booking, customer, provider):
        service.create_review(customer, completed_booking.id, rating=5, comment="Great")

        reviews = service.list_provider_reviews(provider.id)
        snapshot = service.get_provider_rating(provider.id)

        assert [r.booking_id for r in reviews] == [completed_booking.id]
        assert snapshot.average_rating == Decimal("5.0")
        assert snapshot.total_reviews == 1
        assert snapshot.updated_at is not None

    def test_reads_for_unknown_provider(self, service):
        with pytest.raises(NotFoundException):
            service.list_provider_reviews("missing")
        with pytest.raises(NotFoundException):
            service.get_provider_rating("missing")


class TestWriteBackFailure:
    def test_failed_write_back_is_recovered_by_reconciler(
        self, db, session_factory, completed_booking, customer
    ):
        provider_id = completed_booking.provider_id
        service = ReviewService(db, RatingAggregator(db, max_attempts=2, sleep=_no_sleep))
        failure = OperationalError("UPDATE providers", {}, Exception("database is locked"))

        with patch.object(ProviderRepository, "write_rating", side_effect=failure):
            review = service.create_review(customer, completed_booking.id, rating=4, comment="Solid")

        # The review stands even though the aggregate could not be written.
        assert service.get_review(review.id).rating == 4
        assert _stored_rating(session_factory, provider_id) == (Decimal("0.0"), 0)
        assert _pending(session_factory, provider_id) == 1
        assert service.get_provider_rating(provider_id).pending_recompute is True

        # Let the backoff elapse.
        db.execute(
            update(EventOutbox).values(next_attempt_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        )
        db.commit()

        result = RatingAggregator(db, sleep=_no_sleep).reconcile_pending()

        assert result == {"providers": 1, "recomputed": 1}
        assert _stored_rating(session_factory, provider_id) == (Decimal("4.0"), 1)
        assert _pending(session_factory, provider_id) == 0
        assert service.get_provider_rating(provider_id).pending_recompute is False

    def test_backoff_hides_rows_from_reconciler_until_due(
        self, db, completed_booking, customer
    ):
        service = ReviewService(db, RatingAggregator(db, max_attempts=1, sleep=_no_sleep))
        failure = OperationalError("UPDATE providers", {}, Exception("database is locked"))

        with patch.object(ProviderRepository, "write_rating", side_effect=failure):
            service.create_review(customer, completed_booking.id, rating=4, comment="Solid")

        assert RatingAggregator(db).reconcile_pending() == {"providers": 0, "recomputed": 0}


def test_admin_actor_is_not_a_reviewer(service, completed_booking):
    with pytest.raises(UnauthorizedException):
        service.create_review(Actor.admin("root"), completed_booking.id, rating=5, comment="x")
