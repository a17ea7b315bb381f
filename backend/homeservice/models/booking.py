# backend/homeservice/models/booking.py
"""
Booking model for the HomeService marketplace.

Bookings reference the customer, the fulfilling provider and the requested
(category, subcategory) selector that passed the capability check at
creation time. The customer's contact details are snapshotted at creation
and do not follow later profile edits.
"""

from datetime import datetime, timezone
import logging
from typing import Dict

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import BookingStatus, PaymentStatus
from ..database import Base

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """Booking between a customer and a provider for one service selector."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # References
    customer_id = Column(String(26), nullable=False, index=True)
    provider_id = Column(String(26), ForeignKey("providers.id"), nullable=False, index=True)
    category_id = Column(String(64), nullable=False)
    subcategory_id = Column(String(64), nullable=True)

    # Scheduling
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_hours = Column(Numeric(5, 2), nullable=False)
    estimated_hours = Column(Numeric(5, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    notes = Column(Text, nullable=True)

    # Customer snapshot captured at creation
    customer_full_name = Column(String(100), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_location = Column(String(255), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now_utc)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    provider = relationship("Provider")
    review = relationship(
        "Review",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("duration_hours >= 1", name="ck_bookings_duration_min"),
        CheckConstraint("estimated_hours >= 1", name="ck_bookings_estimated_hours_min"),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        CheckConstraint(
            "(notes IS NULL) OR (length(notes) <= 500)",
            name="ck_bookings_notes_length",
        ),
        Index("idx_bookings_provider_status", "provider_id", "status"),
        Index("idx_bookings_customer_status", "customer_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: customer={self.customer_id}, "
            f"provider={self.provider_id}, date={self.booking_date}, status={self.status}>"
        )

    @property
    def user_details(self) -> Dict[str, str]:
        return {
            "full_name": self.customer_full_name,
            "phone_number": self.customer_phone,
            "location": self.customer_location,
        }
