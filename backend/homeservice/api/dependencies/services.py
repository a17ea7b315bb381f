# backend/homeservice/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.rating_aggregator import RatingAggregator
from ...services.review_service import ReviewService
from .database import get_db


def get_rating_aggregator(db: Session = Depends(get_db)) -> RatingAggregator:
    return RatingAggregator(db)


def get_booking_service(
    db: Session = Depends(get_db),
    rating_aggregator: RatingAggregator = Depends(get_rating_aggregator),
) -> BookingService:
    return BookingService(db, rating_aggregator=rating_aggregator)


def get_review_service(
    db: Session = Depends(get_db),
    rating_aggregator: RatingAggregator = Depends(get_rating_aggregator),
) -> ReviewService:
    return ReviewService(db, rating_aggregator=rating_aggregator)
