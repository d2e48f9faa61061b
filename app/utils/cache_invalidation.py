"""Lecture lifecycle hooks that keep the AI response cache consistent"""
import logging

from sqlalchemy.orm import Session

from app.services.ai_cache import ai_cache_service, normalize_lecture_id
from app.services.content_hash import content_hash_service

logger = logging.getLogger(__name__)

class CacheInvalidator:
    """Called by lecture management whenever a lecture changes or disappears"""

    @staticmethod
    def on_lecture_deleted(db: Session, lecture_id: str) -> int:
        """Drop every cached response that references the lecture"""
        deleted = ai_cache_service.invalidate_lecture_cache(db, lecture_id)
        logger.info(f"Lecture {lecture_id} deleted, {deleted} cached responses removed")
        return deleted

    @staticmethod
    def on_lecture_content_changed(db: Session, lecture_id: str, content: str) -> int:
        """Record the new content hash and drop responses built from older content"""
        lecture_id = normalize_lecture_id(lecture_id)
        new_hash = content_hash_service.generate_hash(content)
        stored_hash = content_hash_service.get_lecture_hash(db, lecture_id)

        deleted = 0
        if stored_hash and stored_hash != new_hash:
            deleted = ai_cache_service.invalidate_by_content_hash(db, lecture_id, new_hash)
            logger.info(f"Lecture {lecture_id} content changed, {deleted} cached responses removed")

        if stored_hash != new_hash:
            content_hash_service.update_lecture_hash(db, lecture_id, new_hash)
        return deleted

# Convenience instance
cache_invalidator = CacheInvalidator()
