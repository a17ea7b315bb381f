# backend/homeservice/repositories/review_repository.py
"""
Repository for reviews.

Follows repository pattern: no business logic, DB-only operations.
"""

import logging
from typing import Any, List, Mapping, TypedDict, cast

from sqlalchemy import func
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.review import Review
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProviderAggregate(TypedDict):
    total_reviews: int
    rating_sum: int


class ReviewRepository(BaseRepository[Review]):
    """Data access for `Review`."""

    def __init__(self, db: Session):
        super().__init__(db, Review)

    def exists_for_customer_booking(self, customer_id: str, booking_id: str) -> bool:
        try:
            return (
                self.db.query(Review.id)
                .filter(Review.customer_id == customer_id, Review.booking_id == booking_id)
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking review existence: {e}")
            raise RepositoryException(f"Failed to check review existence: {e}")

    def list_for_provider(self, provider_id: str, *, skip: int = 0, limit: int = 100) -> List[Review]:
        query = (
            self.db.query(Review)
            .filter(Review.provider_id == provider_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return self._execute_query(query)

    def get_provider_aggregates(self, provider_id: str) -> ProviderAggregate:
        """Return review count and exact rating sum for a provider."""
        try:
            row = (
                self.db.query(
                    func.count(Review.id).label("total_reviews"),
                    func.sum(Review.rating).label("rating_sum"),
                )
                .filter(Review.provider_id == provider_id)
                .first()
            )
            if not row:
                return {"total_reviews": 0, "rating_sum": 0}
            mapping: Mapping[str, Any] = cast(Row[Any], row)._mapping
            return {
                "total_reviews": int(mapping.get("total_reviews", 0) or 0),
                "rating_sum": int(mapping.get("rating_sum", 0) or 0),
            }
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating provider reviews: {e}")
            raise RepositoryException(f"Failed to aggregate reviews: {e}")
