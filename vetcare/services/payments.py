"""Appointment payments through the bKash and Nagad gateways."""

import base64
import hashlib
import json
import logging
import uuid

from cryptography.fernet import Fernet
from sqlalchemy.orm import Session

from vetcare.core import config
from vetcare.models.appointment import STATUS_CANCELLED, STATUS_CONFIRMED, STATUS_PENDING, Appointment
from vetcare.models.payment import (
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    Payment,
    calculate_total,
)
from vetcare.models.veterinarian import Veterinarian
from vetcare.services.errors import AppointmentNotFoundError, BookingError, PaymentError, PaymentNotFoundError

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = 'Cancelled appointments cannot be paid.'
ALREADY_PAID_MESSAGE = 'This appointment has already been paid.'


def _build_cipher(secret: str) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())
    return Fernet(key)


cipher_suite = _build_cipher(config.PAYMENT_ENCRYPTION_KEY)


def encrypt_gateway_response(response: dict) -> str:
    return cipher_suite.encrypt(json.dumps(response, sort_keys=True).encode()).decode()


def decrypt_gateway_response(token: str | None) -> dict | None:
    if not token:
        return None
    return json.loads(cipher_suite.decrypt(token.encode()).decode())


def generate_transaction_id(gateway: str) -> str:
    return f'{gateway.upper()}-{uuid.uuid4().hex[:16].upper()}'


def _lock_appointment(db: Session, appointment_id: int) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.id == appointment_id,
    ).with_for_update().populate_existing().first()


def _has_completed_payment(db: Session, appointment_id: int) -> bool:
    return db.query(Payment.id).filter(
        Payment.appointment_id == appointment_id,
        Payment.status == PAYMENT_COMPLETED,
    ).first() is not None


def create_payment(db: Session, appointment_id: int, user_id: int, gateway: str) -> Payment:
    """Open a pending payment; any earlier pending payment for the appointment is marked failed."""
    try:
        appointment = _lock_appointment(db, appointment_id)
        if appointment is None or appointment.pet_owner_id != user_id:
            raise AppointmentNotFoundError()
        if appointment.status == STATUS_CANCELLED:
            raise PaymentError(CANCELLED_MESSAGE)
        if _has_completed_payment(db, appointment_id):
            raise PaymentError(ALREADY_PAID_MESSAGE)

        superseded = db.query(Payment).filter(
            Payment.appointment_id == appointment_id,
            Payment.status == PAYMENT_PENDING,
        ).update({Payment.status: PAYMENT_FAILED}, synchronize_session=False)

        fee = db.query(Veterinarian.consultation_fee).filter(
            Veterinarian.id == appointment.veterinarian_id,
        ).scalar() or 0

        payment = Payment(
            appointment_id=appointment_id,
            user_id=user_id,
            gateway=gateway,
            transaction_id=generate_transaction_id(gateway),
            amount=fee,
            service_charge=config.SERVICE_CHARGE,
            total_amount=calculate_total(fee),
            status=PAYMENT_PENDING,
        )
        db.add(payment)
        db.commit()
    except BookingError:
        db.rollback()
        raise

    db.refresh(payment)
    if superseded:
        logger.info('Marked %s pending payment(s) for appointment %s as failed', superseded, appointment_id)
    logger.info('Payment %s opened for appointment %s via %s', payment.transaction_id, appointment_id, gateway)
    return payment


def _lock_pending_payment(db: Session, payment_id: int, user_id: int) -> tuple[Payment, Appointment | None]:
    # The appointment row is locked before the payment row, in the same order as create_payment.
    appointment_id = db.query(Payment.appointment_id).filter(
        Payment.id == payment_id,
        Payment.user_id == user_id,
    ).scalar()
    if appointment_id is None:
        raise PaymentNotFoundError()

    appointment = _lock_appointment(db, appointment_id)
    payment = db.query(Payment).filter(Payment.id == payment_id).with_for_update().populate_existing().first()
    if payment.status != PAYMENT_PENDING:
        raise PaymentError(f'Payment is already {payment.status}.')
    return payment, appointment


def complete_payment(db: Session, payment_id: int, user_id: int, gateway_response: dict) -> Payment:
    try:
        payment, appointment = _lock_pending_payment(db, payment_id, user_id)
        if appointment is None or appointment.status == STATUS_CANCELLED:
            raise PaymentError(CANCELLED_MESSAGE)
        if _has_completed_payment(db, appointment.id):
            raise PaymentError(ALREADY_PAID_MESSAGE)

        payment.status = PAYMENT_COMPLETED
        payment.gateway_response = encrypt_gateway_response(gateway_response)
        if appointment.status == STATUS_PENDING:
            appointment.status = STATUS_CONFIRMED
        db.commit()
    except BookingError as exc:
        db.rollback()
        logger.warning('Payment %s could not be completed: %s', payment_id, exc.message)
        raise

    db.refresh(payment)
    logger.info('Payment %s completed for appointment %s', payment.transaction_id, payment.appointment_id)
    return payment


def fail_payment(db: Session, payment_id: int, user_id: int, gateway_response: dict) -> Payment:
    try:
        payment, _ = _lock_pending_payment(db, payment_id, user_id)
        payment.status = PAYMENT_FAILED
        payment.gateway_response = encrypt_gateway_response(gateway_response)
        db.commit()
    except BookingError:
        db.rollback()
        raise

    db.refresh(payment)
    logger.warning('Payment %s failed for appointment %s', payment.transaction_id, payment.appointment_id)
    return payment
