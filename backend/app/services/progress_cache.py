"""TTL cache for computed progress metrics.

Three logical caches share one backend, told apart by key prefix:

- ``topic-progress:{student_id}:{topic_id}``   → TopicProgress
- ``lesson-progress:{student_id}:{lesson_id}`` → LessonProgress
- ``dual-metrics:{student_id}``                → DualMetrics

Entries live for ``PROGRESS_CACHE_TTL_SECONDS``. Nothing sweeps the store in
the background: a stale entry is evicted by the read that finds it.

Lesson roll-ups are built from topic progress, so invalidating a student's
topic progress or dual metrics also drops that student's lesson entries.
Lesson invalidation cascades nowhere.
"""

import logging
import time
import uuid
from typing import Any, Callable, Protocol, TypeVar

import redis
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.schemas.progress import DualMetrics, LessonProgress, TopicProgress

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TOPIC_PREFIX = "topic-progress"
LESSON_PREFIX = "lesson-progress"
DUAL_PREFIX = "dual-metrics"


# ── Backends ──────────────────────────────────────────────────────────────────


class CacheBackend(Protocol):
    """Key/value store with per-entry expiry."""

    def get(self, key: str, model: type[ModelT]) -> ModelT | None: ...

    def set(self, key: str, value: BaseModel) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


class InMemoryTTLCache:
    """Process-local ``key → (value, stored_at)`` map with lazy expiry.

    Values are kept as-is, so a fresh read returns the very object that was
    written. ``clock`` defaults to ``time.monotonic`` and is swappable for tests.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, model: type[ModelT]) -> ModelT | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: BaseModel) -> None:
        self._entries[key] = (value, self._clock())

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)


class RedisTTLCache:
    """Redis-backed store shared by every worker process.

    Expiry is delegated to ``SETEX``; values travel as pydantic JSON. Redis
    outages are logged and treated as misses so metrics still get computed.
    """

    def __init__(self, url: str, ttl_seconds: int, namespace: str = "progress_cache"):
        self.ttl_seconds = int(ttl_seconds)
        self._url = url
        self._namespace = namespace
        self._pool: redis.ConnectionPool | None = None

    def _get_redis(self) -> redis.Redis:
        """Return a Redis client backed by a shared connection pool."""
        if self._pool is None:
            self._pool = redis.ConnectionPool.from_url(
                self._url,
                decode_responses=True,
                max_connections=10,
            )
        return redis.Redis(connection_pool=self._pool)

    def _full_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str, model: type[ModelT]) -> ModelT | None:
        try:
            raw = self._get_redis().get(self._full_key(key))
        except redis.RedisError as e:
            logger.warning("Progress cache read failed (non-fatal): %s", e)
            return None
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Dropping unreadable progress cache entry %s: %s", key, e)
            self.delete(key)
            return None

    def set(self, key: str, value: BaseModel) -> None:
        try:
            self._get_redis().setex(
                self._full_key(key), self.ttl_seconds, value.model_dump_json()
            )
        except redis.RedisError as e:
            logger.warning("Progress cache write failed (non-fatal): %s", e)

    def delete(self, key: str) -> None:
        try:
            self._get_redis().delete(self._full_key(key))
        except redis.RedisError as e:
            logger.warning("Progress cache delete failed (non-fatal): %s", e)

    def delete_prefix(self, prefix: str) -> int:
        try:
            r = self._get_redis()
            keys = list(r.scan_iter(match=f"{self._full_key(prefix)}*", count=500))
            if keys:
                r.delete(*keys)
            return len(keys)
        except redis.RedisError as e:
            logger.warning("Progress cache prefix delete failed (non-fatal): %s", e)
            return 0


# ── Service ───────────────────────────────────────────────────────────────────


def topic_key(student_id: uuid.UUID | str, topic_id: uuid.UUID | str) -> str:
    return f"{TOPIC_PREFIX}:{student_id}:{topic_id}"


def lesson_key(student_id: uuid.UUID | str, lesson_id: uuid.UUID | str) -> str:
    return f"{LESSON_PREFIX}:{student_id}:{lesson_id}"


def dual_key(student_id: uuid.UUID | str) -> str:
    return f"{DUAL_PREFIX}:{student_id}"


class ProgressCacheService:
    """Get/set/invalidate helpers for the topic, lesson and dual caches."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    def _get(self, key: str, model: type[ModelT]) -> ModelT | None:
        value = self.backend.get(key, model)
        logger.debug("Progress cache %s: %s", "HIT" if value is not None else "MISS", key)
        return value

    # ── topic ──

    def get_topic_progress(self, student_id, topic_id) -> TopicProgress | None:
        return self._get(topic_key(student_id, topic_id), TopicProgress)

    def set_topic_progress(self, student_id, topic_id, data: TopicProgress) -> None:
        self.backend.set(topic_key(student_id, topic_id), data)

    def invalidate_topic_progress(self, student_id, topic_id) -> None:
        self.backend.delete(topic_key(student_id, topic_id))
        self.invalidate_student_lesson_progress(student_id)

    def invalidate_student_topic_progress(self, student_id) -> None:
        self.backend.delete_prefix(f"{TOPIC_PREFIX}:{student_id}:")
        self.invalidate_student_lesson_progress(student_id)

    # ── lesson ──

    def get_lesson_progress(self, student_id, lesson_id) -> LessonProgress | None:
        return self._get(lesson_key(student_id, lesson_id), LessonProgress)

    def set_lesson_progress(self, student_id, lesson_id, data: LessonProgress) -> None:
        self.backend.set(lesson_key(student_id, lesson_id), data)

    def invalidate_lesson_progress(self, student_id, lesson_id) -> None:
        self.backend.delete(lesson_key(student_id, lesson_id))

    def invalidate_student_lesson_progress(self, student_id) -> None:
        self.backend.delete_prefix(f"{LESSON_PREFIX}:{student_id}:")

    # ── dual ──

    def get_dual_metrics(self, student_id) -> DualMetrics | None:
        return self._get(dual_key(student_id), DualMetrics)

    def set_dual_metrics(self, student_id, data: DualMetrics) -> None:
        self.backend.set(dual_key(student_id), data)

    def invalidate_dual_metrics(self, student_id) -> None:
        self.backend.delete(dual_key(student_id))
        self.invalidate_student_lesson_progress(student_id)

    def invalidate_student(self, student_id) -> None:
        """Drop everything cached for a student after their logs or assignments change."""
        self.invalidate_student_topic_progress(student_id)
        self.invalidate_dual_metrics(student_id)


_cache: ProgressCacheService | None = None


def build_backend() -> CacheBackend:
    """Pick the backend named by ``PROGRESS_CACHE_BACKEND``."""
    ttl = settings.PROGRESS_CACHE_TTL_SECONDS
    if settings.PROGRESS_CACHE_BACKEND == "redis":
        return RedisTTLCache(settings.redis_url, ttl)
    if settings.PROGRESS_CACHE_BACKEND != "memory":
        logger.warning(
            "Unknown PROGRESS_CACHE_BACKEND %r, using in-memory cache",
            settings.PROGRESS_CACHE_BACKEND,
        )
    return InMemoryTTLCache(ttl)


def get_progress_cache() -> ProgressCacheService:
    """Return the process-wide cache service, creating it on first use."""
    global _cache
    if _cache is None:
        _cache = ProgressCacheService(build_backend())
    return _cache
