# backend/homeservice/schemas/booking.py
"""
Booking schemas for HomeService.

A booking carries its own schedule and a snapshot of the customer's contact
details. Create bodies are strict; update bodies ignore unknown keys and are
applied with ``exclude_unset`` so only sent fields reach the role filter.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import settings
from ..core.enums import BookingStatus, PaymentStatus
from .base import Money, StandardizedModel, StrictRequestModel


class UserDetails(BaseModel):
    """Customer contact snapshot captured when the booking is made."""

    full_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=1, max_length=32)
    location: str = Field(..., min_length=1, max_length=255)

    @field_validator("full_name", "phone_number", "location")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class BookingCreate(StrictRequestModel):
    """
    Create a booking against a provider's offered service.

    Exactly one of ``duration_hours``/``estimated_hours`` may be sent, or both
    with equal values. ``total_price`` defaults to the matched service's
    hourly rate times the estimated hours. ``customer_id`` is only read when
    a provider or admin books on a customer's behalf.
    """

    category_id: Optional[str] = Field(None, max_length=64)
    subcategory_id: Optional[str] = Field(None, max_length=64)
    booking_date: date
    start_time: time
    duration_hours: Optional[Money] = None
    estimated_hours: Optional[Money] = None
    total_price: Optional[Money] = None
    notes: Optional[str] = Field(None, max_length=settings.booking_notes_max_length)
    user_details: UserDetails
    customer_id: Optional[str] = Field(None, max_length=26)

    @field_validator("category_id", "subcategory_id", "notes")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class BookingUpdate(BaseModel):
    """
    Partial booking update.

    Which of these fields are applied depends on the caller's role; the rest
    are dropped.
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = Field(None, max_length=settings.booking_notes_max_length)
    category_id: Optional[str] = Field(None, max_length=64)
    subcategory_id: Optional[str] = Field(None, max_length=64)
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    duration_hours: Optional[Money] = None
    estimated_hours: Optional[Money] = None
    total_price: Optional[Money] = None
    cancellation_reason: Optional[str] = Field(None, max_length=500)

    def requested_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class BookingCancel(StrictRequestModel):
    """Schema for cancelling a booking."""

    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class BookingResponse(StandardizedModel):
    id: str
    customer_id: str
    provider_id: str
    category_id: str
    subcategory_id: Optional[str]

    booking_date: date
    start_time: time
    duration_hours: Money
    estimated_hours: Money
    total_price: Money

    status: BookingStatus
    payment_status: PaymentStatus
    notes: Optional[str]
    user_details: UserDetails

    created_at: datetime
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class BookingListResponse(StandardizedModel):
    bookings: List[BookingResponse]
    count: int
