from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase, dialect_insert
from app.models.lecture_content_hash import LectureContentHash

class CRUDLectureContentHash(CRUDBase[LectureContentHash]):

    def get_hash(self, db: Session, *, lecture_id: str) -> Optional[str]:
        record = self.get(db, lecture_id)
        return record.content_hash if record else None

    def set_hash(self, db: Session, *, lecture_id: str, content_hash: str, now: datetime) -> None:
        insert = dialect_insert(db)
        stmt = insert(LectureContentHash).values(
            lecture_id=lecture_id,
            content_hash=content_hash,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LectureContentHash.lecture_id],
            set_={"content_hash": stmt.excluded.content_hash, "updated_at": now},
        )
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

lecture_content_hash = CRUDLectureContentHash(LectureContentHash)
