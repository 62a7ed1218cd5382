import uuid
from datetime import datetime
from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    DateTime,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    """Client profile, owned by the booking store."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)


class Booking(Base):
    """Coaching session booking. Read-only input for calendar sync."""

    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=_uuid)
    client_id = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    session_date = Column(DateTime, nullable=False, index=True)
    session_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")  # "pending", "confirmed", "cancelled"
    goals = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Profile", lazy="joined")


class CalendarCredentials(Base):
    """OAuth app registration for a provider, shared by every user."""

    __tablename__ = "calendar_credentials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String, nullable=False, unique=True)  # "google", "outlook"
    client_id = Column(String, nullable=False)
    client_secret = Column(String, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CalendarConnection(Base):
    """A user's OAuth grant for one calendar provider."""

    __tablename__ = "calendar_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    provider = Column(String, nullable=False)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    email = Column(String, nullable=True)
    connected_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uix_connection_user_provider"),)
