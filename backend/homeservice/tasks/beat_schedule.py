# backend/homeservice/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for HomeService.
"""

from datetime import timedelta
from typing import Any, Dict

from ..core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        # Sweep PENDING rating recompute events left behind by failed write-backs
        "reconcile-provider-ratings": {
            "task": "ratings.reconcile_pending",
            "schedule": timedelta(seconds=settings.rating_reconcile_interval_seconds),
            "options": {"queue": "ratings", "expires": settings.rating_reconcile_interval_seconds},
        },
    }
