from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import date, datetime

class CacheKey(BaseModel):
    """Request descriptor a cache key is derived from."""
    operation_type: Optional[str] = None
    # ids are opaque: strings, UUIDs or anything with a stable str()
    lecture_ids: Optional[List[Any]] = None
    params: Optional[Dict[str, Any]] = None
    content_hash: Optional[str] = None

class CachedResponse(BaseModel):
    cache_key: str
    operation_type: str
    lecture_ids: List[str]
    params: Dict[str, Any]
    content_hash: str
    response_data: Any
    tokens_used: int
    content_size: int
    hit_count: int
    created_at: datetime
    last_accessed_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CacheStats(BaseModel):
    total_entries: int = 0
    total_hits: int = 0
    total_misses: int = 0
    hit_rate: float = 0.0
    tokens_saved: int = 0
    estimated_cost_saved: float = 0.0
    storage_used: int = 0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None

class DailyCacheStats(BaseModel):
    stat_date: date
    cache_hits: int
    cache_misses: int
    tokens_saved: int

    model_config = ConfigDict(from_attributes=True)

class LectureInvalidationResult(BaseModel):
    lecture_id: str
    deleted_entries: int

class CleanupResult(BaseModel):
    older_than_days: int
    deleted_entries: int

class ClearAllCacheRequest(BaseModel):
    confirm: Optional[str] = None
