# backend/homeservice/services/review_service.py
"""
ReviewService: business logic for reviews.

Implements:
- Submission (one per customer and booking, completed bookings only)
- Owner/admin edits and deletion
- Rating aggregate upkeep via the outbox-backed RatingAggregator
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.config import settings
from ..core.enums import ActorKind, BookingRole, BookingStatus
from ..core.exceptions import (
    DuplicateReviewException,
    IntegrityConstraintException,
    NotCompletedException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ..models.review import Review
from ..repositories.booking_repository import BookingRepository
from ..repositories.provider_repository import ProviderRepository
from ..repositories.review_repository import ReviewRepository
from .base import BaseService
from .rating_aggregator import RatingAggregator, RatingSnapshot


class ReviewService(BaseService):
    """Service layer for reviews & ratings."""

    def __init__(
        self,
        db: Session,
        rating_aggregator: Optional[RatingAggregator] = None,
    ) -> None:
        super().__init__(db)
        self.repository = ReviewRepository(db)
        self.booking_repository = BookingRepository(db)
        self.provider_repository = ProviderRepository(db)
        self.rating_aggregator = rating_aggregator or RatingAggregator(db)

    @staticmethod
    def _validate_rating(rating: Optional[int]) -> int:
        if rating is None or isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationException("Rating must be an integer between 1 and 5")
        if rating < 1 or rating > 5:
            raise ValidationException("Rating must be an integer between 1 and 5")
        return rating

    @staticmethod
    def _validate_comment(comment: Optional[str]) -> str:
        text = (comment or "").strip()
        if not text:
            raise ValidationException("Comment is required")
        if len(text) > settings.review_comment_max_length:
            raise ValidationException(
                f"Comment cannot exceed {settings.review_comment_max_length} characters"
            )
        return text

    @BaseService.measure_operation("create_review")
    def create_review(
        self,
        actor: Actor,
        booking_id: str,
        *,
        rating: int,
        comment: str,
        provider_id: Optional[str] = None,
    ) -> Review:
        """Submit a review for a completed booking owned by the customer."""
        rating = self._validate_rating(rating)
        comment = self._validate_comment(comment)

        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})

        if actor.kind is not ActorKind.CUSTOMER or actor.role_for(booking) is not BookingRole.OWNING_CUSTOMER:
            raise UnauthorizedException("Only the booking's customer can review it")
        if provider_id and provider_id != booking.provider_id:
            raise ValidationException(
                "Booking does not belong to this provider",
                details={"booking_id": booking_id, "provider_id": provider_id},
            )
        if booking.status != BookingStatus.COMPLETED.value:
            raise NotCompletedException(booking.id, booking.status)
        if self.repository.exists_for_customer_booking(actor.id, booking.id):
            raise DuplicateReviewException(booking.id)

        with self.transaction():
            try:
                review = self.repository.create(
                    customer_id=actor.id,
                    provider_id=booking.provider_id,
                    booking_id=booking.id,
                    rating=rating,
                    comment=comment,
                )
            except IntegrityConstraintException as exc:
                # Lost a race with a concurrent submission for the same booking.
                raise DuplicateReviewException(booking.id) from exc
            self.rating_aggregator.enqueue_recompute(
                review.provider_id, "review_created", review_id=review.id
            )

        self.log_operation("create_review", review_id=review.id, provider_id=review.provider_id)
        self.rating_aggregator.recompute_provider_rating(review.provider_id)
        return review

    @BaseService.measure_operation("get_review")
    def get_review(self, review_id: str) -> Review:
        review = self.repository.get_by_id(review_id)
        if review is None:
            raise NotFoundException("Review not found", details={"review_id": review_id})
        return review

    @BaseService.measure_operation("list_provider_reviews")
    def list_provider_reviews(self, provider_id: str, *, skip: int = 0, limit: int = 100) -> List[Review]:
        if self.provider_repository.get_by_id(provider_id) is None:
            raise NotFoundException("Provider not found", details={"provider_id": provider_id})
        return self.repository.list_for_provider(provider_id, skip=skip, limit=limit)

    @BaseService.measure_operation("update_review")
    def update_review(
        self,
        actor: Actor,
        review_id: str,
        *,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> Review:
        """Edit rating and/or comment. A rating change recomputes the provider aggregate."""
        review = self.get_review(review_id)
        self._require_owner_or_admin(actor, review)

        rating_changed = False
        with self.transaction():
            if rating is not None:
                rating = self._validate_rating(rating)
                rating_changed = rating != review.rating
                review.rating = rating
            if comment is not None:
                review.comment = self._validate_comment(comment)
            if rating_changed:
                self.rating_aggregator.enqueue_recompute(
                    review.provider_id, "review_updated", review_id=review.id
                )
            self.db.flush()

        if rating_changed:
            self.rating_aggregator.recompute_provider_rating(review.provider_id)
        return review

    @BaseService.measure_operation("delete_review")
    def delete_review(self, actor: Actor, review_id: str) -> None:
        review = self.get_review(review_id)
        self._require_owner_or_admin(actor, review)
        provider_id = review.provider_id

        with self.transaction():
            self.rating_aggregator.enqueue_recompute(provider_id, "review_deleted", review_id=review.id)
            self.repository.delete(review.id)

        self.log_operation("delete_review", review_id=review_id, provider_id=provider_id)
        self.rating_aggregator.recompute_provider_rating(provider_id)

    @BaseService.measure_operation("get_provider_rating")
    def get_provider_rating(self, provider_id: str) -> RatingSnapshot:
        snapshot = self.rating_aggregator.get_provider_rating(provider_id)
        if snapshot is None:
            raise NotFoundException("Provider not found", details={"provider_id": provider_id})
        return snapshot

    @staticmethod
    def _require_owner_or_admin(actor: Actor, review: Review) -> None:
        role = actor.role_for(review)
        if role not in (BookingRole.OWNING_CUSTOMER, BookingRole.ADMIN):
            raise UnauthorizedException("You are not allowed to modify this review")
