# backend/homeservice/repositories/provider_repository.py
"""Data access for providers and their offered services."""

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Iterable, Optional, Sequence, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.provider import Provider, ProviderService, ProviderServiceSubcategory
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProviderRepository(BaseRepository[Provider]):
    """Data access for `Provider`."""

    def __init__(self, db: Session):
        super().__init__(db, Provider)

    def create_provider(
        self,
        *,
        full_name: str,
        services: Sequence[dict] = (),
        provider_id: Optional[str] = None,
    ) -> Provider:
        """
        Create a provider with its ordered service entries.

        Each service dict takes ``name``, ``category_id``, ``hourly_rate`` and
        optionally ``subcategory_ids`` and ``description``.
        """
        provider = Provider(full_name=full_name)
        if provider_id:
            provider.id = provider_id
        for position, entry in enumerate(services):
            provider.services.append(self._build_service(position, entry))
        return self.add(provider)

    def replace_services(self, provider: Provider, services: Iterable[dict]) -> Provider:
        """Replace a provider's service list, preserving the given order."""
        try:
            provider.services.clear()
            self.db.flush()
            for position, entry in enumerate(services):
                provider.services.append(self._build_service(position, entry))
            self.db.flush()
            return provider
        except SQLAlchemyError as e:
            self.logger.error(f"Error replacing services for provider {provider.id}: {e}")
            raise RepositoryException(f"Failed to replace provider services: {e}")

    @staticmethod
    def _build_service(position: int, entry: dict) -> ProviderService:
        service = ProviderService(
            position=position,
            name=entry["name"],
            category_id=entry["category_id"],
            hourly_rate=Decimal(str(entry["hourly_rate"])),
            description=entry.get("description"),
        )
        for subcategory_id in dict.fromkeys(entry.get("subcategory_ids") or ()):
            service.subcategories.append(ProviderServiceSubcategory(subcategory_id=subcategory_id))
        return service

    def get_for_update(self, provider_id: str) -> Optional[Provider]:
        """Load a provider holding a row lock for the rest of the transaction."""
        try:
            return cast(
                Optional[Provider],
                self.db.query(Provider)
                .filter(Provider.id == provider_id)
                .with_for_update()
                .populate_existing()
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking provider {provider_id}: {e}")
            raise RepositoryException(f"Failed to lock provider: {e}")

    def write_rating(self, provider: Provider, *, average_rating: Decimal, total_reviews: int) -> Provider:
        """Persist the denormalized aggregate on a (locked) provider row."""
        try:
            provider.average_rating = average_rating
            provider.total_reviews = total_reviews
            provider.rating_updated_at = datetime.now(timezone.utc)
            self.db.flush()
            return provider
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing rating for provider {provider.id}: {e}")
            raise RepositoryException(f"Failed to write provider rating: {e}")
