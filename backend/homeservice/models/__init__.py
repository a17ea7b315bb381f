"""SQLAlchemy models for the HomeService booking core."""

from .booking import Booking
from .event_outbox import RATING_RECOMPUTE_EVENT, EventOutbox, EventOutboxStatus
from .provider import Provider, ProviderService, ProviderServiceSubcategory
from .review import Review

__all__ = [
    "Booking",
    "EventOutbox",
    "EventOutboxStatus",
    "Provider",
    "ProviderService",
    "ProviderServiceSubcategory",
    "RATING_RECOMPUTE_EVENT",
    "Review",
]
