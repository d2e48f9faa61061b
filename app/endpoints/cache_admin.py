from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.config import settings
from app.core.constants import CLEAR_ALL_CACHE_CONFIRMATION
from app.schemas.ai_cache import (
    CacheStats,
    CleanupResult,
    ClearAllCacheRequest,
    DailyCacheStats,
    LectureInvalidationResult,
)
from app.schemas.response import APIResponse
from app.schemas.token import TokenPayload
from app.services.ai_cache import ai_cache_service
from app.utils import deps

router = APIRouter()

@router.get("/stats", response_model=APIResponse[CacheStats])
def get_cache_stats(
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_admin)
):
    """Get aggregated cache statistics"""
    stats = ai_cache_service.get_cache_stats(db)
    return APIResponse(message="Cache statistics retrieved", data=stats)

@router.get("/stats/daily", response_model=APIResponse[List[DailyCacheStats]])
def get_daily_cache_stats(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_admin)
):
    """Get per-day hit, miss and token counters"""
    daily = ai_cache_service.get_daily_stats(db, days=days)
    return APIResponse(message="Daily cache statistics retrieved", data=daily)

@router.delete("/lecture/{lecture_id}", response_model=APIResponse[LectureInvalidationResult])
def invalidate_lecture_cache(
    lecture_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_teacher_or_admin)
):
    """Invalidate every cached response that references a lecture"""
    deleted = ai_cache_service.invalidate_lecture_cache(db, lecture_id)
    return APIResponse(
        message="Lecture cache invalidated",
        data=LectureInvalidationResult(lecture_id=lecture_id, deleted_entries=deleted)
    )

@router.delete("/old", response_model=APIResponse[CleanupResult])
def clear_old_cache(
    days: int = Query(settings.AI_CACHE_MAX_AGE_DAYS, ge=1),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_admin)
):
    """Clear cache entries older than ``days`` days"""
    deleted = ai_cache_service.clear_old_cache(db, days)
    return APIResponse(
        message="Old cache entries cleared",
        data=CleanupResult(older_than_days=days, deleted_entries=deleted)
    )

@router.delete("/all", response_model=APIResponse)
def clear_all_cache(
    payload: Optional[ClearAllCacheRequest] = None,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_admin)
):
    """Clear every cache entry. Requires {"confirm": "DELETE_ALL_CACHE"}"""
    if payload is None or payload.confirm != CLEAR_ALL_CACHE_CONFIRMATION:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Confirmation required. Send {{"confirm": "{CLEAR_ALL_CACHE_CONFIRMATION}"}} to clear all cache'
        )
    ai_cache_service.clear_all_cache(db)
    return APIResponse(message="All cache entries cleared")
