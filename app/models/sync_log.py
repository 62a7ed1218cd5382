"""Sync log model for auditing calendar pushes."""

from datetime import datetime
from sqlalchemy import Column, ForeignKey, Integer, String, DateTime, Text

from app.core.database import Base


class CalendarSyncLog(Base):
    """Append-only record of one sync invocation."""

    __tablename__ = "calendar_sync_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(
        Integer,
        ForeignKey("calendar_connections.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    provider = Column(String, nullable=False)
    direction = Column(String, nullable=False, default="push")
    status = Column(String, nullable=False)  # "success", "error"
    details = Column(Text, nullable=True)
    pushed = Column(Integer, nullable=False, default=0)
    errors = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
