"""Stored notification model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from vetcare.database import Base


class Notification(Base):
    """A notification delivered to a user through the database channel."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    data = Column(JSON, nullable=False)
    read_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
