# backend/homeservice/schemas/review.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field
from pydantic.functional_validators import field_validator

from ..core.config import settings
from .base import StandardizedModel, StrictRequestModel


def _clean_comment(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v2 = v.strip()
    if not v2:
        raise ValueError("Comment cannot be empty")
    return v2


class ReviewCreate(StrictRequestModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., max_length=settings.review_comment_max_length)
    provider_id: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def clean_comment(cls, v: str) -> str:
        return _clean_comment(v)


class ReviewUpdate(StrictRequestModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=settings.review_comment_max_length)

    @field_validator("comment")
    @classmethod
    def clean_comment(cls, v: Optional[str]) -> Optional[str]:
        return _clean_comment(v)


class ReviewResponse(StandardizedModel):
    id: str
    customer_id: str
    provider_id: str
    booking_id: str
    rating: int
    comment: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class ReviewListResponse(StandardizedModel):
    reviews: List[ReviewResponse]
    count: int
