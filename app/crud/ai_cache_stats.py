from datetime import date, datetime
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase, dialect_insert
from app.models.ai_cache_stats import AICacheStats

class CRUDAICacheStats(CRUDBase[AICacheStats]):

    def record_request(self, db: Session, *, stat_date: date, is_hit: bool, tokens_saved: int, now: datetime) -> None:
        """Add one hit or miss to the counters of ``stat_date``."""
        hits = 1 if is_hit else 0
        misses = 0 if is_hit else 1
        insert = dialect_insert(db)
        stmt = insert(AICacheStats).values(
            stat_date=stat_date,
            cache_hits=hits,
            cache_misses=misses,
            tokens_saved=tokens_saved,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AICacheStats.stat_date],
            set_={
                "cache_hits": AICacheStats.cache_hits + hits,
                "cache_misses": AICacheStats.cache_misses + misses,
                "tokens_saved": AICacheStats.tokens_saved + tokens_saved,
                "updated_at": now,
            },
        )
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    def get_since(self, db: Session, *, start_date: date) -> List[AICacheStats]:
        return (
            db.query(AICacheStats)
            .filter(AICacheStats.stat_date >= start_date)
            .order_by(AICacheStats.stat_date.desc())
            .all()
        )

ai_cache_stats = CRUDAICacheStats(AICacheStats)
