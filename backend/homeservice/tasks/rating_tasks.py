# backend/homeservice/tasks/rating_tasks.py
"""
Celery tasks for provider rating aggregates.

`ratings.reconcile_pending` runs on a beat schedule and recomputes every
provider whose outbox still holds PENDING recompute events.
`ratings.recompute_provider` recomputes one provider on demand.
"""

from __future__ import annotations

from typing import Dict, Optional

from celery.utils.log import get_task_logger

from ..database import session_scope
from ..services.rating_aggregator import RatingAggregator
from .celery_app import celery_app

logger = get_task_logger(__name__)


@celery_app.task(name="ratings.reconcile_pending", max_retries=0)
def reconcile_pending(limit: Optional[int] = None) -> Dict[str, int]:
    """Returns counts of providers found and successfully recomputed."""
    with session_scope() as session:
        result = RatingAggregator(session).reconcile_pending(limit=limit)
    if result["providers"]:
        logger.info(
            "Reconciled %s providers (%s recomputed)", result["providers"], result["recomputed"]
        )
    return result


@celery_app.task(name="ratings.recompute_provider", max_retries=0)
def recompute_provider(provider_id: str) -> bool:
    with session_scope() as session:
        snapshot = RatingAggregator(session).recompute_provider_rating(provider_id)
    return snapshot is not None
