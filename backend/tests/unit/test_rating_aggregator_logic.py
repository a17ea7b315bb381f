"""
Unit tests for RatingAggregator retry and failure handling.

Repositories are mocked so failures can be injected at each step.
"""

from contextlib import contextmanager
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from homeservice.core.exceptions import RepositoryException
from homeservice.core.provider_lock import ProviderLockTimeout
from homeservice.models.event_outbox import RATING_RECOMPUTE_EVENT
from homeservice.services.rating_aggregator import RatingAggregator


class TestRatingAggregatorUnit:
    @pytest.fixture
    def mock_db(self):
        return Mock(spec=Session)

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def aggregator(self, mock_db, sleeps):
        agg = RatingAggregator(mock_db, max_attempts=3, backoff_seconds=0.1, sleep=sleeps.append)
        agg.provider_repository = Mock()
        agg.review_repository = Mock()
        agg.outbox_repository = Mock()
        agg.outbox_repository.pending_ids_for_aggregate.return_value = ["evt-1", "evt-2"]
        agg.outbox_repository.max_attempt_count.return_value = 1
        agg.review_repository.get_provider_aggregates.return_value = {
            "total_reviews": 3,
            "rating_sum": 14,
        }
        return agg

    @staticmethod
    def _provider():
        return SimpleNamespace(id="prov-1", rating_updated_at=None)

    def test_writes_rounded_aggregate_and_marks_observed_events(self, aggregator, mock_db):
        provider = self._provider()
        aggregator.provider_repository.get_for_update.return_value = provider

        snapshot = aggregator.recompute_provider_rating("prov-1")

        assert snapshot.average_rating == Decimal("4.7")
        assert snapshot.total_reviews == 3
        aggregator.provider_repository.write_rating.assert_called_once_with(
            provider, average_rating=Decimal("4.7"), total_reviews=3
        )
        aggregator.outbox_repository.mark_sent.assert_called_once_with(["evt-1", "evt-2"])
        mock_db.commit.assert_called_once()

    def test_empty_review_set_writes_zero(self, aggregator):
        aggregator.provider_repository.get_for_update.return_value = self._provider()
        aggregator.review_repository.get_provider_aggregates.return_value = {
            "total_reviews": 0,
            "rating_sum": 0,
        }

        snapshot = aggregator.recompute_provider_rating("prov-1")

        assert snapshot.average_rating == Decimal("0.0")
        assert snapshot.total_reviews == 0

    def test_transient_failure_is_retried_with_backoff(self, aggregator, mock_db, sleeps):
        aggregator.provider_repository.get_for_update.side_effect = [
            RepositoryException("connection reset"),
            self._provider(),
        ]

        snapshot = aggregator.recompute_provider_rating("prov-1")

        assert snapshot is not None
        assert sleeps == [0.1]
        mock_db.rollback.assert_called_once()
        aggregator.outbox_repository.mark_retry.assert_not_called()

    def test_exhausted_retries_defer_to_reconciler_without_raising(self, aggregator, mock_db, sleeps):
        aggregator.provider_repository.write_rating.side_effect = OperationalError(
            "UPDATE providers", {}, Exception("database is locked")
        )
        aggregator.provider_repository.get_for_update.return_value = self._provider()

        result = aggregator.recompute_provider_rating("prov-1")

        assert result is None
        assert sleeps == [0.1, 0.2]
        assert aggregator.provider_repository.write_rating.call_count == 3
        aggregator.outbox_repository.mark_sent.assert_not_called()
        aggregator.outbox_repository.mark_retry.assert_called_once()
        args, kwargs = aggregator.outbox_repository.mark_retry.call_args
        assert args == (RATING_RECOMPUTE_EVENT, "prov-1")
        assert kwargs["backoff_seconds"] > 0
        assert "OperationalError" in kwargs["error"]

    def test_lock_timeout_is_retried(self, aggregator, sleeps):
        aggregator.provider_repository.get_for_update.return_value = self._provider()
        calls = []

        @contextmanager
        def flaky_lock(provider_id):
            calls.append(provider_id)
            if len(calls) == 1:
                raise ProviderLockTimeout("busy")
            yield

        with patch("homeservice.services.rating_aggregator.provider_rating_lock", flaky_lock):
            snapshot = aggregator.recompute_provider_rating("prov-1")

        assert snapshot is not None
        assert calls == ["prov-1", "prov-1"]
        assert sleeps == [0.1]

    def test_missing_provider_clears_events(self, aggregator):
        aggregator.provider_repository.get_for_update.return_value = None

        assert aggregator.recompute_provider_rating("gone") is None
        aggregator.provider_repository.write_rating.assert_not_called()
        aggregator.outbox_repository.mark_sent.assert_called_once_with(["evt-1", "evt-2"])

    def test_unexpected_errors_propagate(self, aggregator):
        aggregator.provider_repository.get_for_update.side_effect = TypeError("bug")

        with pytest.raises(TypeError):
            aggregator.recompute_provider_rating("prov-1")

    def test_reconcile_recomputes_each_due_provider(self, aggregator):
        aggregator.outbox_repository.due_aggregate_ids.return_value = ["p1", "p2"]
        aggregator.provider_repository.get_for_update.side_effect = [self._provider(), None]

        result = aggregator.reconcile_pending(limit=10)

        assert result == {"providers": 2, "recomputed": 1}
        aggregator.outbox_repository.due_aggregate_ids.assert_called_once_with(
            RATING_RECOMPUTE_EVENT, limit=10
        )
