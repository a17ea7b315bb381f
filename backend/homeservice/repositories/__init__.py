"""Repository layer: database access without business rules."""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .event_outbox_repository import EventOutboxRepository
from .provider_repository import ProviderRepository
from .review_repository import ReviewRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "EventOutboxRepository",
    "ProviderRepository",
    "ReviewRepository",
]
