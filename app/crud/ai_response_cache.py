import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AggregationUnavailableError
from app.crud.base import CRUDBase, dialect_insert
from app.models.ai_cache_stats import AICacheStats
from app.models.ai_response_cache import AIResponseCache, ai_response_cache_lectures

# Fields overwritten when an existing key is stored again. hit_count,
# created_at and last_accessed_at are deliberately absent.
UPSERT_FIELDS = (
    "operation_type",
    "lecture_ids",
    "params",
    "content_hash",
    "response_data",
    "tokens_used",
    "content_size",
)

_NO_SYNC = {"synchronize_session": False}

cache_table = AIResponseCache.__table__

def link_lecture_id(lecture_id: Any) -> str:
    """UUIDs are stored in canonical form so any spelling of the id matches on delete."""
    try:
        return str(uuid.UUID(str(lecture_id)))
    except ValueError:
        return str(lecture_id)

class CRUDAIResponseCache(CRUDBase[AIResponseCache]):

    def get_by_key(self, db: Session, *, cache_key: str) -> Optional[AIResponseCache]:
        return db.query(AIResponseCache).filter(AIResponseCache.cache_key == cache_key).first()

    def upsert(self, db: Session, *, cache_key: str, fields: Dict[str, Any], now: datetime) -> None:
        """Insert the entry or overwrite its payload fields in one statement."""
        insert = dialect_insert(db)
        values = {field: fields[field] for field in UPSERT_FIELDS}
        stmt = insert(AIResponseCache).values(
            cache_key=cache_key,
            hit_count=0,
            created_at=now,
            last_accessed_at=now,
            **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AIResponseCache.cache_key],
            set_={field: stmt.excluded[field] for field in UPSERT_FIELDS},
        )
        link_rows = [
            {"cache_key": cache_key, "lecture_id": lecture_id}
            for lecture_id in sorted({link_lecture_id(lecture_id) for lecture_id in values["lecture_ids"]})
        ]
        try:
            db.execute(stmt)
            db.execute(
                delete(ai_response_cache_lectures)
                .where(ai_response_cache_lectures.c.cache_key == cache_key)
            )
            if link_rows:
                db.execute(ai_response_cache_lectures.insert(), link_rows)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    def increment_hit(self, db: Session, *, cache_key: str, now: datetime) -> Optional[Row]:
        """Bump hit_count, touch last_accessed_at and return the updated row in one statement.

        None when the key is absent.
        """
        stmt = (
            update(cache_table)
            .where(cache_table.c.cache_key == cache_key)
            .values(hit_count=cache_table.c.hit_count + 1, last_accessed_at=now)
            .returning(*cache_table.c)
        )
        try:
            row = db.execute(stmt).first()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return row

    def delete_by_lecture(self, db: Session, *, lecture_id: str) -> int:
        keys = select(ai_response_cache_lectures.c.cache_key).where(
            ai_response_cache_lectures.c.lecture_id == lecture_id
        )
        return self._delete_entries(db, AIResponseCache.cache_key.in_(keys))

    def delete_by_lecture_and_stale_hash(self, db: Session, *, lecture_id: str, content_hash: str) -> int:
        keys = select(ai_response_cache_lectures.c.cache_key).where(
            ai_response_cache_lectures.c.lecture_id == lecture_id
        )
        return self._delete_entries(
            db,
            AIResponseCache.cache_key.in_(keys),
            AIResponseCache.content_hash != content_hash,
        )

    def delete_older_than(self, db: Session, *, cutoff: datetime) -> int:
        return self._delete_entries(db, AIResponseCache.created_at < cutoff)

    def delete_all(self, db: Session) -> int:
        try:
            db.execute(delete(ai_response_cache_lectures))
            result = db.execute(delete(AIResponseCache), execution_options=_NO_SYNC)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return result.rowcount

    def aggregate_stats(self, db: Session) -> Dict[str, Any]:
        """Entry totals from the cache table, request totals from the daily counters.

        Hits, misses and tokens saved come from the counters, which outlive
        invalidated and expired entries.
        """
        try:
            entries = db.query(
                func.count(AIResponseCache.cache_key),
                func.coalesce(func.sum(AIResponseCache.content_size), 0),
                func.min(AIResponseCache.created_at),
                func.max(AIResponseCache.created_at),
            ).one()
            requests = db.query(
                func.coalesce(func.sum(AICacheStats.cache_hits), 0),
                func.coalesce(func.sum(AICacheStats.cache_misses), 0),
                func.coalesce(func.sum(AICacheStats.tokens_saved), 0),
            ).one()
        except SQLAlchemyError as e:
            db.rollback()
            raise AggregationUnavailableError(f"Cache statistics query failed: {e}") from e

        total_entries, storage_used, oldest, newest = entries
        total_hits, total_misses, tokens_saved = requests
        return {
            "total_entries": int(total_entries),
            "total_hits": int(total_hits),
            "total_misses": int(total_misses),
            "tokens_saved": int(tokens_saved),
            "storage_used": int(storage_used),
            "oldest_entry": oldest,
            "newest_entry": newest,
        }

    def _delete_entries(self, db: Session, *criteria) -> int:
        try:
            result = db.execute(
                delete(AIResponseCache).where(*criteria),
                execution_options=_NO_SYNC,
            )
            self._delete_orphan_links(db)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return result.rowcount

    def _delete_orphan_links(self, db: Session) -> None:
        # SQLite does not enforce the ON DELETE CASCADE without the foreign_keys pragma
        db.execute(
            delete(ai_response_cache_lectures).where(
                ai_response_cache_lectures.c.cache_key.not_in(select(AIResponseCache.cache_key))
            ),
        )

    def get_lecture_ids(self, db: Session, *, cache_key: str) -> List[str]:
        rows = db.execute(
            select(ai_response_cache_lectures.c.lecture_id)
            .where(ai_response_cache_lectures.c.cache_key == cache_key)
            .order_by(ai_response_cache_lectures.c.lecture_id)
        ).all()
        return [row[0] for row in rows]

ai_response_cache = CRUDAIResponseCache(AIResponseCache)
