import logging
import os
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import AICacheError
from app.services.ai_cache import ai_cache_service

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def clear_expired_ai_cache():
    db = SessionLocal()
    try:
        deleted = ai_cache_service.clear_old_cache(db, settings.AI_CACHE_MAX_AGE_DAYS)
        logger.info(f"Scheduled AI cache cleanup removed {deleted} entries older than {settings.AI_CACHE_MAX_AGE_DAYS} days")
    except AICacheError as e:
        logger.error(f"Error during scheduled AI cache cleanup: {e}")
    finally:
        db.close()


def start_scheduler():
    if os.getenv("TESTING") == "true":
        logger.info("Scheduler disabled in test environment")
        return

    if not settings.AI_CACHE_CLEANUP_ENABLED:
        logger.info("Scheduled AI cache cleanup disabled")
        return

    if not scheduler.running:
        scheduler.add_job(
            clear_expired_ai_cache,
            'cron',
            hour=settings.AI_CACHE_CLEANUP_HOUR,
            minute=0,
            id='ai_cache_cleanup',
            name='Clear Expired AI Cache Entries',
            replace_existing=True
        )
        scheduler.start()
        logger.info("Scheduler started with daily AI cache cleanup job")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
