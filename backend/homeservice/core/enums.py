# backend/homeservice/core/enums.py
"""
Core enums for the HomeService booking core.

Values are stored as lowercase strings in the database and on the wire.
"""

from enum import Enum


class ActorKind(str, Enum):
    """Role tag carried by every caller of a core operation."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment state, orthogonal to the booking status."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class BookingRole(str, Enum):
    """Relationship of an actor to one specific booking."""

    OWNING_CUSTOMER = "owning_customer"
    FULFILLING_PROVIDER = "fulfilling_provider"
    ADMIN = "admin"
    STRANGER = "stranger"
