"""Pet model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from vetcare.database import Base

SPECIES = (
    "dog", "cat", "bird", "rabbit", "hamster", "cow", "goat",
    "sheep", "chicken", "duck", "horse", "pig", "other",
)
GENDERS = ("male", "female")


class Pet(Base):
    """An animal registered by a pet owner. Rows are soft deleted."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    species = Column(String, nullable=False, index=True)
    breed = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    weight = Column(Numeric(8, 2), nullable=False)
    gender = Column(String)
    medical_notes = Column(Text)
    created_at = Column(DateTime, default=datetime.now)
    deleted_at = Column(DateTime)

    owner = relationship("User", back_populates="pets")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = datetime.now()
