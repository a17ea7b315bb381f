# backend/homeservice/models/provider.py
"""
Provider models.

A provider declares an ordered list of offered services; each entry names a
category, an optional set of subcategories, and an hourly rate. The
average_rating/total_reviews pair is a denormalized aggregate owned by the
rating aggregator and is never written by request handlers directly.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import FrozenSet

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Provider(Base):
    """Service provider with its offered services and rating aggregate."""

    __tablename__ = "providers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    full_name = Column(String(50), nullable=False)

    # Denormalized aggregate derived from reviews
    average_rating = Column(Numeric(2, 1), nullable=False, default=Decimal("0.0"))
    total_reviews = Column(Integer, nullable=False, default=0)
    rating_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    services = relationship(
        "ProviderService",
        back_populates="provider",
        order_by="ProviderService.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "average_rating >= 0 AND average_rating <= 5",
            name="ck_providers_average_rating_range",
        ),
        CheckConstraint("total_reviews >= 0", name="ck_providers_total_reviews_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Provider {self.id}: services={len(self.services or [])}, "
            f"rating={self.average_rating}/{self.total_reviews}>"
        )


class ProviderService(Base):
    """One offered-service entry on a provider."""

    __tablename__ = "provider_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(100), nullable=False)
    category_id = Column(String(64), nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)

    provider = relationship("Provider", back_populates="services")
    subcategories = relationship(
        "ProviderServiceSubcategory",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("hourly_rate >= 0", name="ck_provider_services_rate_non_negative"),
        CheckConstraint(
            "(description IS NULL) OR (length(description) <= 200)",
            name="ck_provider_services_description_length",
        ),
        Index("idx_provider_services_provider_category", "provider_id", "category_id"),
    )

    @property
    def subcategory_ids(self) -> FrozenSet[str]:
        return frozenset(s.subcategory_id for s in self.subcategories or [])


class ProviderServiceSubcategory(Base):
    """Subcategory membership for a provider service entry."""

    __tablename__ = "provider_service_subcategories"

    service_id = Column(
        String(26), ForeignKey("provider_services.id", ondelete="CASCADE"), primary_key=True
    )
    subcategory_id = Column(String(64), primary_key=True)
