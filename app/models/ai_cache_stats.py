from sqlalchemy import Column, Integer, Date, DateTime

from app.core.database import Base

class AICacheStats(Base):
    __tablename__ = "ai_cache_stats"

    stat_date = Column(Date, primary_key=True)
    cache_hits = Column(Integer, nullable=False, default=0)
    cache_misses = Column(Integer, nullable=False, default=0)
    tokens_saved = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=True)
