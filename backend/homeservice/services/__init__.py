"""Service layer: business rules and transaction boundaries."""

from .base import BaseService
from .booking_service import BookingService
from .rating_aggregator import RatingAggregator, RatingSnapshot
from .review_service import ReviewService

__all__ = [
    "BaseService",
    "BookingService",
    "RatingAggregator",
    "RatingSnapshot",
    "ReviewService",
]
