"""Veterinarian and specialization model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Table, Text
from sqlalchemy.orm import relationship

from vetcare.database import Base

veterinarian_specialization = Table(
    "veterinarian_specialization",
    Base.metadata,
    Column("veterinarian_id", Integer, ForeignKey("veterinarians.id", ondelete="CASCADE"), primary_key=True),
    Column("specialization_id", Integer, ForeignKey("specializations.id", ondelete="CASCADE"), primary_key=True),
)


class Specialization(Base):
    """A field of veterinary practice, e.g. surgery or livestock."""
    __tablename__ = "specializations"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text)

    veterinarians = relationship(
        "Veterinarian",
        secondary=veterinarian_specialization,
        back_populates="specializations",
    )


class Veterinarian(Base):
    """Professional profile attached to a user with the veterinarian role."""
    __tablename__ = "veterinarians"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    license_number = Column(String, unique=True, nullable=False)
    experience_years = Column(Integer, default=0)
    bio = Column(Text)
    consultation_fee = Column(Numeric(10, 2), default=0)
    profile_image = Column(String)
    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User", back_populates="veterinarian_profile")
    specializations = relationship(
        "Specialization",
        secondary=veterinarian_specialization,
        back_populates="veterinarians",
    )
    time_slots = relationship("TimeSlot", back_populates="veterinarian")

    def average_rating(self) -> float:
        # Reviews are not collected yet.
        return 0.0
