"""
Per-provider mutual exclusion for rating aggregate write-back.

Every recompute for a provider runs inside ``provider_rating_lock``. The
process-local lock always applies; the Redis lock extends exclusion across
processes when ``rating_lock_backend == "redis"``. If Redis is unreachable
the database row lock taken by the aggregator remains the cross-process
guard.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Dict, Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_POLL_INTERVAL_SECONDS = 0.05


class ProviderLockTimeout(Exception):
    """Raised when a provider lock could not be acquired in time."""


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    refs: int = 0


class KeyedLockRegistry:
    """Process-local locks keyed by string, discarded once nobody holds or waits."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _LockEntry] = {}

    def _checkout(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs <= 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str, timeout: float = -1) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=timeout):
                raise ProviderLockTimeout(f"Timed out waiting for local lock {key}")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


_LOCAL_LOCKS = KeyedLockRegistry()


def _lock_key(provider_id: str) -> str:
    return f"provider:{provider_id}:rating"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("provider_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _acquire_redis_lock(client: Redis, key: str, token: str, ttl_s: int, wait_s: float) -> bool:
    deadline = time.monotonic() + wait_s
    while True:
        if client.set(key, token, nx=True, ex=ttl_s):
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(_POLL_INTERVAL_SECONDS)


def _release_redis_lock(client: Redis, key: str, token: str) -> None:
    # Only delete the key if this holder still owns it (TTL may have expired).
    if client.get(key) == token:
        client.delete(key)


@contextmanager
def _redis_lock(provider_id: str, key: str, ttl: int, wait: float) -> Iterator[None]:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_provider_lock("acquire", "redis_unavailable")
        logger.warning("provider_lock_redis_unavailable", extra={"provider_id": provider_id})
        yield
        return

    token = f"{threading.get_ident()}:{time.time()}"
    namespaced = _namespaced_key(key)
    try:
        acquired = _acquire_redis_lock(client, namespaced, token, ttl, wait)
    except Exception as exc:
        prometheus_metrics.record_provider_lock("acquire", "error")
        logger.warning(
            "provider_lock_redis_acquire_failed",
            extra={
                "provider_id": provider_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        yield
        return

    if not acquired:
        raise ProviderLockTimeout(f"Timed out waiting for provider lock {provider_id}")

    try:
        yield
    finally:
        try:
            _release_redis_lock(client, namespaced, token)
            prometheus_metrics.record_provider_lock("release", "success")
        except Exception as exc:
            prometheus_metrics.record_provider_lock("release", "error")
            logger.warning(
                "provider_lock_redis_release_failed",
                extra={
                    "provider_id": provider_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )


@contextmanager
def provider_rating_lock(
    provider_id: str,
    *,
    ttl_s: Optional[int] = None,
    wait_s: Optional[float] = None,
) -> Iterator[None]:
    """Serialize rating recomputes for one provider."""
    ttl = ttl_s if ttl_s is not None else settings.rating_lock_ttl_seconds
    wait = wait_s if wait_s is not None else settings.rating_lock_wait_seconds
    key = _lock_key(provider_id)

    try:
        with _LOCAL_LOCKS.hold(key, timeout=wait):
            if settings.rating_lock_backend == "redis":
                with _redis_lock(provider_id, key, ttl, wait):
                    prometheus_metrics.record_provider_lock("acquire", "success")
                    yield
            else:
                prometheus_metrics.record_provider_lock("acquire", "success")
                yield
    except ProviderLockTimeout:
        prometheus_metrics.record_provider_lock("acquire", "timeout")
        raise
