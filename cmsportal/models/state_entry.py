"""StateEntry model, the persisted key-value namespace"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from cmsportal.database import Base


class StateEntry(Base):
    """One JSON document per key (posts, authors, documents, ...).

    ``version`` is bumped on every write and compared on the way in, so a
    read-modify-write that raced another writer is rejected instead of
    silently overwriting it.
    """

    __tablename__ = "state_entries"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)                  # JSON-encoded document
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
