"""API routers."""

from . import bookings, health, providers, reviews

__all__ = ["bookings", "health", "providers", "reviews"]
