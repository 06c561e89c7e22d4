"""Domain enums and the key/value table backing the SQL store."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from database import Base
import enum


class ReadingStatus(str, enum.Enum):
    """Reading status of a library entry."""
    READING = "reading"
    ON_HOLD = "on-hold"
    DROPPED = "dropped"
    FINISHED = "finished"


class SiteSource(str, enum.Enum):
    """Sites with a registered adapter."""
    NOVELBIN = "novelbin"
    NOVELFULL = "novelfull"
    RANOBES = "ranobes"
    WUXIAWORLD = "wuxiaworld"


class KeyValueEntry(Base):
    """One serialized value of the key/value store."""
    __tablename__ = 'kv_store'

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<KeyValueEntry(key='{self.key}', size={len(self.value or '')})>"
