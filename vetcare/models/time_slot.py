"""Time slot model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, and_
from sqlalchemy.orm import relationship

from vetcare.database import Base


class TimeSlot(Base):
    """A bookable interval of a veterinarian's calendar."""
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True)
    veterinarian_id = Column(Integer, ForeignKey("veterinarians.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)

    veterinarian = relationship("Veterinarian", back_populates="time_slots")

    def is_bookable(self) -> bool:
        return bool(self.is_available) and not self.is_blocked

    @classmethod
    def bookable_clause(cls):
        return and_(cls.is_available.is_(True), cls.is_blocked.is_(False))
