"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from vetcare.database import Base

ROLE_PET_OWNER = "pet_owner"
ROLE_VETERINARIAN = "veterinarian"
ROLE_ADMIN = "admin"
ROLES = (ROLE_PET_OWNER, ROLE_VETERINARIAN, ROLE_ADMIN)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_PET_OWNER)  # pet_owner/veterinarian/admin
    phone = Column(String)
    address = Column(String)
    created_at = Column(DateTime, default=datetime.now)

    pets = relationship("Pet", back_populates="owner")
    veterinarian_profile = relationship("Veterinarian", back_populates="user", uselist=False)

    def is_pet_owner(self) -> bool:
        return self.role == ROLE_PET_OWNER

    def is_veterinarian(self) -> bool:
        return self.role == ROLE_VETERINARIAN

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
