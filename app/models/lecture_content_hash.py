from sqlalchemy import Column, String, DateTime

from app.core.database import Base

class LectureContentHash(Base):
    __tablename__ = "lecture_content_hashes"

    lecture_id = Column(String(64), primary_key=True)
    content_hash = Column(String(64), nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)
