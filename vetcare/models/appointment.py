"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from vetcare.database import Base

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED)
CANCELLABLE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_IN_PROGRESS)


class Appointment(Base):
    """Represents a booking of a time slot for a pet."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    pet_owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    veterinarian_id = Column(Integer, ForeignKey("veterinarians.id", ondelete="CASCADE"), nullable=False, index=True)
    pet_id = Column(Integer, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING, index=True)
    consultation_notes = Column(Text)
    scheduled_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    pet_owner = relationship("User")
    veterinarian = relationship("Veterinarian")
    pet = relationship("Pet")
    time_slot = relationship("TimeSlot")
    payments = relationship("Payment", back_populates="appointment")

    def is_active(self) -> bool:
        return self.status != STATUS_CANCELLED
