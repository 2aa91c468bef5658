"""Payment model definitions."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from vetcare.core import config
from vetcare.database import Base

GATEWAYS = ("bkash", "nagad")
PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"


def calculate_total(consultation_fee: Decimal) -> Decimal:
    """Consultation fee plus the flat platform service charge."""
    return (Decimal(consultation_fee) + config.SERVICE_CHARGE).quantize(Decimal("0.01"))


class Payment(Base):
    """A payment made through a mobile banking gateway for an appointment."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    gateway = Column(String, nullable=False)
    transaction_id = Column(String, unique=True, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    service_charge = Column(Numeric(10, 2), nullable=False, default=config.SERVICE_CHARGE)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default=PAYMENT_PENDING, index=True)
    gateway_response = Column(Text)  # Fernet token, see services.payments
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    appointment = relationship("Appointment", back_populates="payments")
