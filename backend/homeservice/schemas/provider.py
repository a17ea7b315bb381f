from datetime import datetime
from typing import Optional

from .base import Money, StandardizedModel


class ProviderRatingResponse(StandardizedModel):
    """Stored rating aggregate for a provider."""

    provider_id: str
    average_rating: Money
    total_reviews: int
    rating_updated_at: Optional[datetime] = None
    rating_pending: bool = False
