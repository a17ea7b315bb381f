# backend/homeservice/models/review.py
"""
Review model.

Design notes:
- ULID string IDs everywhere (26 chars)
- One review per (customer, booking) via DB unique constraint
- provider_id is copied from the booking so aggregation is a single-table query
"""

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Review(Base):
    """Review submitted by a customer for a completed booking."""

    __tablename__ = "reviews"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    customer_id = Column(String(26), nullable=False, index=True)
    provider_id = Column(String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=lambda: datetime.now(timezone.utc),
    )

    booking = relationship("Booking", back_populates="review")

    __table_args__ = (
        UniqueConstraint("customer_id", "booking_id", name="uq_reviews_customer_booking"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        CheckConstraint("length(comment) <= 500", name="ck_reviews_comment_length"),
        Index("idx_reviews_provider", "provider_id"),
    )

    def __repr__(self) -> str:
        return f"<Review {self.id}: provider={self.provider_id}, booking={self.booking_id}, rating={self.rating}>"
