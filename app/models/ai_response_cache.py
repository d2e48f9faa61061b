from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Table, JSON
from sqlalchemy.dialects.postgresql import JSONB
from app.core.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

ai_response_cache_lectures = Table(
    "ai_response_cache_lectures",
    Base.metadata,
    Column("cache_key", String(64), ForeignKey("ai_response_cache.cache_key", ondelete="CASCADE"), primary_key=True),
    Column("lecture_id", String(64), primary_key=True, index=True),
)

class AIResponseCache(Base):
    __tablename__ = "ai_response_cache"

    cache_key = Column(String(64), primary_key=True)
    operation_type = Column(String(50), nullable=False, index=True)
    lecture_ids = Column(JSONType, nullable=False)
    params = Column(JSONType, nullable=False)
    content_hash = Column(String(64), nullable=False, index=True)
    response_data = Column(JSONType, nullable=False)
    tokens_used = Column(Integer, nullable=False, default=0)
    content_size = Column(Integer, nullable=False, default=0)
    hit_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, index=True)
    last_accessed_at = Column(DateTime, nullable=False)
