"""AI response cache.

Cached AI responses are addressed by a SHA-256 fingerprint of the operation
type, the lecture set, the request parameters and the lecture content hash.
Every call round-trips to the database; nothing is held in process memory, so
any number of workers can share the cache safely.
"""
import hashlib
import json
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import OperationTypeEnum
from app.core.exceptions import (
    AggregationUnavailableError,
    InvalidArgumentError,
    InvalidInputError,
    StoreUnavailableError,
)
from app.crud.ai_cache_stats import ai_cache_stats
from app.crud.ai_response_cache import ai_response_cache
from app.schemas.ai_cache import CacheKey, CachedResponse, CacheStats, DailyCacheStats

logger = logging.getLogger(__name__)

VALID_OPERATION_TYPES = {op.value for op in OperationTypeEnum}

# producer() -> (response_data, tokens_used, content_size)
Producer = Callable[[], Tuple[Any, int, int]]

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Cache store error during {operation}: {e}")
        raise StoreUnavailableError(operation, str(e)) from e

def normalize_lecture_id(lecture_id: Any) -> str:
    """Canonical lowercase hyphenated form of a lecture UUID."""
    try:
        return str(uuid.UUID(str(lecture_id)))
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"lectureId must be a valid UUID, got {lecture_id!r}")

def _canonical_params(value: Any) -> Any:
    # 1.0 and 1 are the same JSON number
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {str(k): _canonical_params(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical_params(v) for v in value]
    return value

# pydantic field -> message raised for a malformed descriptor
_DESCRIPTOR_ERRORS = {
    "operation_type": "operationType is required",
    "lecture_ids": "lectureIds must be a non-empty array",
    "params": "params must be an object",
    "content_hash": "contentHash is required",
}

class AICacheService:

    def __init__(self, store=ai_response_cache, stats_store=ai_cache_stats):
        self.store = store
        self.stats_store = stats_store

    @staticmethod
    def generate_cache_key(key: Union[CacheKey, Dict[str, Any]]) -> str:
        """Derive the 64-char hex cache key for a request descriptor.

        Lecture ids are deduplicated and sorted, params are serialized with
        their keys sorted at every level (list order is kept), so neither
        ordering affects the key.
        """
        if isinstance(key, dict):
            try:
                key = CacheKey.model_validate(key)
            except ValidationError as e:
                loc = e.errors()[0]["loc"] if e.errors() else ()
                field = loc[0] if loc else None
                raise InvalidInputError(_DESCRIPTOR_ERRORS.get(field, "Invalid cache key descriptor")) from e

        operation_type = getattr(key.operation_type, "value", key.operation_type)
        if not operation_type:
            raise InvalidInputError("operationType is required")
        if operation_type not in VALID_OPERATION_TYPES:
            raise InvalidInputError(f"Unsupported operationType: {operation_type}")
        if not key.lecture_ids:
            raise InvalidInputError("lectureIds must be a non-empty array")
        if not key.content_hash:
            raise InvalidInputError("contentHash is required")

        lecture_ids = sorted({str(lecture_id) for lecture_id in key.lecture_ids})
        key_string = "|".join([
            operation_type,
            json.dumps(lecture_ids, separators=(",", ":"), ensure_ascii=False),
            json.dumps(
                _canonical_params(key.params or {}),
                sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str,
            ),
            key.content_hash,
        ])
        return hashlib.sha256(key_string.encode("utf-8")).hexdigest()

    def get_cached_response(self, db: Session, cache_key: str) -> Optional[CachedResponse]:
        """Return the entry for ``cache_key`` or None. A hit bumps hit_count and last_accessed_at."""
        now = _utcnow()
        with _store_errors("cache lookup"):
            entry = self.store.increment_hit(db, cache_key=cache_key, now=now)

        if entry is None:
            logger.debug(f"Cache MISS for key: {cache_key}")
            return None

        cached = CachedResponse.model_validate(entry)
        logger.info(f"Cache HIT for key: {cache_key} (hit_count={cached.hit_count}, tokens_saved={cached.tokens_used})")
        self._track_request(db, is_hit=True, tokens_saved=cached.tokens_used, now=now)
        return cached

    def cache_response(
        self,
        db: Session,
        cache_key: str,
        operation_type: Union[OperationTypeEnum, str],
        lecture_ids: List[str],
        params: Dict[str, Any],
        content_hash: str,
        response_data: Any,
        tokens_used: int,
        content_size: int,
    ) -> None:
        """Store a freshly generated response. Never raises: caching is best-effort."""
        fields = {
            "operation_type": getattr(operation_type, "value", operation_type),
            "lecture_ids": [str(lecture_id) for lecture_id in lecture_ids],
            "params": params or {},
            "content_hash": content_hash,
            "response_data": response_data,
            "tokens_used": tokens_used,
            "content_size": content_size,
        }
        attempts = 1 + max(settings.AI_CACHE_WRITE_RETRIES, 0)
        for attempt in range(1, attempts + 1):
            try:
                self.store.upsert(db, cache_key=cache_key, fields=fields, now=_utcnow())
                break
            except Exception as e:
                if attempt < attempts:
                    logger.warning(f"Cache write failed for key {cache_key} (attempt {attempt}/{attempts}): {e}")
                    time.sleep(settings.AI_CACHE_WRITE_RETRY_BACKOFF_SECONDS * attempt)
                    continue
                logger.error(f"Error caching response for key {cache_key}: {e}")
                return

        logger.info(
            f"Cache STORED for key: {cache_key}",
            extra={
                "operation_type": fields["operation_type"],
                "tokens_used": tokens_used,
                "content_size": content_size,
            },
        )
        self._track_request(db, is_hit=False, tokens_saved=0, now=_utcnow())

    def get_or_generate(self, db: Session, key: CacheKey, producer: Producer) -> Tuple[Any, bool]:
        """Serve ``key`` from the cache or call ``producer`` and store its result.

        Returns ``(response_data, from_cache)``.
        """
        cache_key = self.generate_cache_key(key)
        cached = self.get_cached_response(db, cache_key)
        if cached is not None:
            return cached.response_data, True

        response_data, tokens_used, content_size = producer()
        self.cache_response(
            db,
            cache_key,
            key.operation_type,
            key.lecture_ids,
            key.params,
            key.content_hash,
            response_data,
            tokens_used,
            content_size,
        )
        return response_data, False

    def invalidate_lecture_cache(self, db: Session, lecture_id: str) -> int:
        lecture_id = normalize_lecture_id(lecture_id)
        with _store_errors("lecture invalidation"):
            deleted = self.store.delete_by_lecture(db, lecture_id=lecture_id)
        logger.info(f"Cache INVALIDATED for lecture {lecture_id}: {deleted} entries removed")
        return deleted

    def invalidate_by_content_hash(self, db: Session, lecture_id: str, new_content_hash: str) -> int:
        """Drop entries for ``lecture_id`` that were generated from other content."""
        lecture_id = normalize_lecture_id(lecture_id)
        if not new_content_hash:
            raise InvalidInputError("contentHash is required")
        with _store_errors("content hash invalidation"):
            deleted = self.store.delete_by_lecture_and_stale_hash(
                db, lecture_id=lecture_id, content_hash=new_content_hash
            )
        logger.info(f"Cache INVALIDATED for lecture {lecture_id} by content hash change: {deleted} entries removed")
        return deleted

    def clear_old_cache(self, db: Session, days_threshold: int) -> int:
        """Delete entries created strictly before ``now - days_threshold`` days."""
        if isinstance(days_threshold, bool) or not isinstance(days_threshold, int) or days_threshold < 0:
            raise InvalidInputError("daysThreshold must be a non-negative integer")
        cutoff = _utcnow() - timedelta(days=days_threshold)
        with _store_errors("age cleanup"):
            deleted = self.store.delete_older_than(db, cutoff=cutoff)
        logger.info(f"Old cache CLEARED: {deleted} entries created before {cutoff.isoformat()} removed")
        return deleted

    def clear_all_cache(self, db: Session) -> None:
        with _store_errors("full clear"):
            deleted = self.store.delete_all(db)
        logger.warning(f"All cache CLEARED: {deleted} entries removed")

    def get_cache_stats(self, db: Session) -> CacheStats:
        aggregate = getattr(self.store, "aggregate_stats", None)
        try:
            if aggregate is None:
                raise AggregationUnavailableError("Cache store has no aggregation entry point")
            raw = aggregate(db)
        except AggregationUnavailableError as e:
            logger.warning(f"Cache statistics unavailable, returning empty stats: {e}")
            return CacheStats()

        hits = raw["total_hits"]
        misses = raw["total_misses"]
        requests = hits + misses
        tokens_saved = raw["tokens_saved"]
        return CacheStats(
            total_entries=raw["total_entries"],
            total_hits=hits,
            total_misses=misses,
            hit_rate=round(hits / requests, 4) if requests else 0.0,
            tokens_saved=tokens_saved,
            estimated_cost_saved=round(tokens_saved / 1_000_000 * settings.AI_CACHE_COST_PER_MILLION_TOKENS, 6),
            storage_used=raw["storage_used"],
            oldest_entry=raw["oldest_entry"],
            newest_entry=raw["newest_entry"],
        )

    def get_daily_stats(self, db: Session, days: int = 30) -> List[DailyCacheStats]:
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise InvalidInputError("days must be a non-negative integer")
        start_date = (_utcnow() - timedelta(days=days)).date()
        with _store_errors("daily statistics"):
            rows = self.stats_store.get_since(db, start_date=start_date)
        return [DailyCacheStats.model_validate(row) for row in rows]

    def _track_request(self, db: Session, *, is_hit: bool, tokens_saved: int, now: datetime) -> None:
        try:
            self.stats_store.record_request(
                db, stat_date=now.date(), is_hit=is_hit, tokens_saved=tokens_saved, now=now
            )
        except Exception as e:
            logger.error(f"Error tracking cache stats: {e}")

ai_cache_service = AICacheService()
