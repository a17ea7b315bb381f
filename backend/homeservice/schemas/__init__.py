"""Pydantic request/response schemas."""

from .booking import (
    BookingCancel,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    UserDetails,
)
from .provider import ProviderRatingResponse
from .review import ReviewCreate, ReviewListResponse, ReviewResponse, ReviewUpdate

__all__ = [
    "BookingCancel",
    "BookingCreate",
    "BookingListResponse",
    "BookingResponse",
    "BookingUpdate",
    "ProviderRatingResponse",
    "ReviewCreate",
    "ReviewListResponse",
    "ReviewResponse",
    "ReviewUpdate",
    "UserDetails",
]
