# backend/homeservice/repositories/event_outbox_repository.py
"""
Repository for event outbox operations.

Implements transactional enqueue, pending fetch and status updates required
by the rating aggregator and its reconciler.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, List, Optional, Sequence, cast

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
import ulid

from ..models.event_outbox import EventOutbox, EventOutboxStatus

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    """Return timezone-aware utcnow suitable for DB comparisons."""
    return datetime.now(timezone.utc)


class EventOutboxRepository:
    """Data access helpers for event outbox rows."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ enqueue
    def enqueue(
        self,
        event_type: str,
        aggregate_id: str,
        payload: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> EventOutbox:
        """Insert a new PENDING outbox row in the caller's transaction."""
        event_id = str(ulid.ULID())
        row = EventOutbox(
            id=event_id,
            event_type=event_type,
            aggregate_id=aggregate_id,
            payload=payload or {},
            idempotency_key=idempotency_key or f"{event_type}:{aggregate_id}:{event_id}",
            status=EventOutboxStatus.PENDING.value,
            attempt_count=0,
            next_attempt_at=_now_utc(),
        )
        self.db.add(row)
        self.db.flush()
        return row

    # ---------------------------------------------------------------- fetchers
    def pending_ids_for_aggregate(self, event_type: str, aggregate_id: str) -> List[str]:
        """Return ids of all PENDING rows for one aggregate, regardless of backoff."""
        stmt = (
            select(EventOutbox.id)
            .where(EventOutbox.event_type == event_type)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
        )
        return [cast(str, row) for row in self.db.execute(stmt).scalars().all()]

    def due_aggregate_ids(self, event_type: str, limit: int = 200) -> List[str]:
        """Return distinct aggregate ids with PENDING rows whose backoff has elapsed."""
        now = _now_utc()
        stmt = (
            select(EventOutbox.aggregate_id, func.min(EventOutbox.next_attempt_at).label("due"))
            .where(EventOutbox.event_type == event_type)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
            .where(EventOutbox.next_attempt_at <= now)
            .group_by(EventOutbox.aggregate_id)
            .order_by("due")
            .limit(limit)
        )
        return [cast(str, row.aggregate_id) for row in self.db.execute(stmt).all()]

    def count_pending(self, event_type: str, aggregate_id: Optional[str] = None) -> int:
        stmt = (
            select(func.count(EventOutbox.id))
            .where(EventOutbox.event_type == event_type)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
        )
        if aggregate_id is not None:
            stmt = stmt.where(EventOutbox.aggregate_id == aggregate_id)
        return int(self.db.execute(stmt).scalar_one() or 0)

    # ------------------------------------------------------------- state updates
    def mark_sent(self, event_ids: Sequence[str]) -> None:
        """Mark rows as processed."""
        if not event_ids:
            return
        now = _now_utc()
        self.db.execute(
            update(EventOutbox)
            .where(EventOutbox.id.in_(list(event_ids)))
            .values(
                status=EventOutboxStatus.SENT.value,
                attempt_count=EventOutbox.attempt_count + 1,
                last_error=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.flush()

    def mark_retry(
        self,
        event_type: str,
        aggregate_id: str,
        *,
        backoff_seconds: int,
        error: str | None = None,
    ) -> None:
        """Push every PENDING row of an aggregate back by ``backoff_seconds``."""
        now = _now_utc()
        self.db.execute(
            update(EventOutbox)
            .where(EventOutbox.event_type == event_type)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
            .values(
                attempt_count=EventOutbox.attempt_count + 1,
                next_attempt_at=now + timedelta(seconds=max(backoff_seconds, 1)),
                last_error=(error[:1000] if error else None),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.flush()

    def max_attempt_count(self, event_type: str, aggregate_id: str) -> int:
        stmt = (
            select(func.max(EventOutbox.attempt_count))
            .where(EventOutbox.event_type == event_type)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
        )
        return int(self.db.execute(stmt).scalar_one_or_none() or 0)
