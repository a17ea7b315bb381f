# backend/homeservice/services/rating_aggregator.py
"""
Rating Aggregator for HomeService providers.

Keeps ``Provider.average_rating`` / ``Provider.total_reviews`` equal to the
aggregate over the provider's reviews.

Every review mutation enqueues a ``provider.rating_recompute`` outbox row in
the same transaction as the review write, then calls
``recompute_provider_rating`` once that transaction has committed. A
recompute:

1. takes the per-provider lock (process-local, plus Redis when configured)
2. snapshots the provider's PENDING outbox ids
3. locks the provider row and reads COUNT/SUM over its reviews
4. writes the aggregate and marks the snapshotted outbox rows SENT

Reads happen after the lock is held, so the last recompute to run always
sees every committed review. If write-back keeps failing the outbox rows stay
PENDING with a backoff and ``reconcile_pending`` picks them up later.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import time
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import RepositoryException, ServiceException
from ..core.provider_lock import ProviderLockTimeout, provider_rating_lock
from ..models.event_outbox import RATING_RECOMPUTE_EVENT
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.event_outbox_repository import EventOutboxRepository
from ..repositories.provider_repository import ProviderRepository
from ..repositories.review_repository import ReviewRepository
from .base import BaseService
from .ratings_math import average_rating

# Failures worth retrying: transient storage errors and lock contention.
RETRYABLE_ERRORS = (SQLAlchemyError, RepositoryException, ServiceException, ProviderLockTimeout)


@dataclass(frozen=True)
class RatingSnapshot:
    provider_id: str
    average_rating: Decimal
    total_reviews: int
    updated_at: Optional[datetime] = None
    # True while recompute events for the provider are still queued
    pending_recompute: bool = False


class RatingAggregator(BaseService):
    """Recomputes and writes back provider rating aggregates."""

    def __init__(
        self,
        db: Session,
        *,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(db)
        self.provider_repository = ProviderRepository(db)
        self.review_repository = ReviewRepository(db)
        self.outbox_repository = EventOutboxRepository(db)
        self.max_attempts = max_attempts or settings.rating_recompute_max_attempts
        self.backoff_seconds = (
            settings.rating_recompute_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep

    def enqueue_recompute(self, provider_id: str, reason: str, **payload: str) -> None:
        """Record that ``provider_id`` needs a recompute. Call inside the review transaction."""
        self.outbox_repository.enqueue(
            RATING_RECOMPUTE_EVENT,
            provider_id,
            payload={"reason": reason, **payload},
        )

    @BaseService.measure_operation("recompute_provider_rating")
    def recompute_provider_rating(self, provider_id: str) -> Optional[RatingSnapshot]:
        """
        Recompute the aggregate for one provider, retrying transient failures.

        Returns the written snapshot, or None if every attempt failed. Failure
        is never raised to the caller; the pending outbox rows are left for
        the reconciler.
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                with provider_rating_lock(provider_id):
                    snapshot = self._recompute_locked(provider_id)
                prometheus_metrics.record_rating_recompute("success")
                if snapshot is not None:
                    self.logger.info(
                        "Provider rating recomputed",
                        extra={
                            "provider_id": provider_id,
                            "average_rating": str(snapshot.average_rating),
                            "total_reviews": snapshot.total_reviews,
                            "attempt": attempt,
                        },
                    )
                return snapshot
            except RETRYABLE_ERRORS as exc:
                self.db.rollback()
                last_error = exc
                if attempt >= self.max_attempts:
                    break
                prometheus_metrics.record_rating_recompute("retry")
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                self.logger.warning(
                    "Provider rating recompute failed; retrying",
                    extra={
                        "provider_id": provider_id,
                        "attempt": attempt,
                        "delay_seconds": delay,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                if delay > 0:
                    self._sleep(delay)

        prometheus_metrics.record_rating_recompute("exhausted")
        self.logger.error(
            "Provider rating recompute exhausted retries; deferring to reconciler",
            extra={
                "provider_id": provider_id,
                "attempts": self.max_attempts,
                "error": str(last_error),
                "error_type": type(last_error).__name__,
            },
        )
        self._defer(provider_id, last_error)
        return None

    def _recompute_locked(self, provider_id: str) -> Optional[RatingSnapshot]:
        observed_ids = self.outbox_repository.pending_ids_for_aggregate(
            RATING_RECOMPUTE_EVENT, provider_id
        )

        provider = self.provider_repository.get_for_update(provider_id)
        if provider is None:
            # Provider removed; nothing to write, the events are moot.
            self.outbox_repository.mark_sent(observed_ids)
            self.db.commit()
            self.logger.info(
                "Skipping rating recompute for missing provider",
                extra={"provider_id": provider_id},
            )
            return None

        aggregate = self.review_repository.get_provider_aggregates(provider_id)
        total = aggregate["total_reviews"]
        average = average_rating(aggregate["rating_sum"], total)

        self.provider_repository.write_rating(provider, average_rating=average, total_reviews=total)
        self.outbox_repository.mark_sent(observed_ids)
        self.db.commit()

        return RatingSnapshot(
            provider_id=provider_id,
            average_rating=average,
            total_reviews=total,
            updated_at=provider.rating_updated_at,
        )

    def _defer(self, provider_id: str, error: Optional[BaseException]) -> None:
        """Push the provider's pending rows back so the reconciler retries later."""
        try:
            attempts = self.outbox_repository.max_attempt_count(RATING_RECOMPUTE_EVENT, provider_id)
            backoff = min(
                settings.rating_reconcile_interval_seconds * (2 ** min(attempts, 16)),
                settings.rating_reconcile_max_backoff_seconds,
            )
            self.outbox_repository.mark_retry(
                RATING_RECOMPUTE_EVENT,
                provider_id,
                backoff_seconds=backoff,
                error=f"{type(error).__name__}: {error}" if error else None,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            # Rows are still PENDING and due; the reconciler will find them.
            self.db.rollback()
            self.logger.error(
                "Failed to record rating recompute backoff",
                extra={"provider_id": provider_id, "error": str(exc)},
            )

    @BaseService.measure_operation("reconcile_pending_ratings")
    def reconcile_pending(self, limit: Optional[int] = None) -> Dict[str, int]:
        """Recompute every provider with due PENDING outbox rows."""
        batch = limit or settings.rating_reconcile_batch_size
        provider_ids = self.outbox_repository.due_aggregate_ids(RATING_RECOMPUTE_EVENT, limit=batch)
        # End the read so each recompute starts a fresh transaction.
        self.db.commit()

        recomputed = 0
        for provider_id in provider_ids:
            if self.recompute_provider_rating(provider_id) is not None:
                recomputed += 1

        if provider_ids:
            self.logger.info(
                "Reconciled pending provider ratings",
                extra={"providers": len(provider_ids), "recomputed": recomputed},
            )
        return {"providers": len(provider_ids), "recomputed": recomputed}

    def get_provider_rating(self, provider_id: str) -> Optional[RatingSnapshot]:
        provider = self.provider_repository.get_by_id(provider_id)
        if provider is None:
            return None
        # Sessions keep loaded state across commits; the aggregate may have
        # been written by another session since.
        self.db.refresh(provider)
        pending = self.outbox_repository.count_pending(RATING_RECOMPUTE_EVENT, provider.id)
        return RatingSnapshot(
            provider_id=provider.id,
            average_rating=Decimal(provider.average_rating or 0),
            total_reviews=int(provider.total_reviews or 0),
            updated_at=provider.rating_updated_at,
            pending_recompute=pending > 0,
        )
