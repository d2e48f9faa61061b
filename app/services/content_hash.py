import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailableError
from app.crud.lecture_content_hash import lecture_content_hash as crud_lecture_hash

logger = logging.getLogger(__name__)

class ContentHashService:
    """Fingerprints lecture text so cached AI responses can follow content changes."""

    @staticmethod
    def generate_hash(content: str) -> str:
        # trim, lowercase and collapse whitespace runs before hashing
        normalized = " ".join(content.lower().split())
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def get_lecture_hash(self, db: Session, lecture_id: str) -> Optional[str]:
        try:
            return crud_lecture_hash.get_hash(db, lecture_id=lecture_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching content hash for lecture {lecture_id}: {e}")
            raise StoreUnavailableError("lecture hash lookup", str(e)) from e

    def update_lecture_hash(self, db: Session, lecture_id: str, new_hash: str) -> None:
        try:
            crud_lecture_hash.set_hash(
                db,
                lecture_id=lecture_id,
                content_hash=new_hash,
                now=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        except SQLAlchemyError as e:
            logger.error(f"Error updating content hash for lecture {lecture_id}: {e}")
            raise StoreUnavailableError("lecture hash update", str(e)) from e
        logger.info(f"Updated content hash for lecture {lecture_id}")

    def has_content_changed(self, db: Session, lecture_id: str, current_content: str) -> bool:
        """True when no hash is stored yet or the stored one differs. Lookup failures count as changed."""
        try:
            stored_hash = self.get_lecture_hash(db, lecture_id)
        except StoreUnavailableError as e:
            logger.warning(f"Assuming content changed for lecture {lecture_id}: {e}")
            return True
        if not stored_hash:
            return True
        return stored_hash != self.generate_hash(current_content)

content_hash_service = ContentHashService()
