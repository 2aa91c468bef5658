"""Booking and cancellation of veterinarian time slots.

A slot is reserved inside a single transaction: the slot row is read with
``SELECT ... FOR UPDATE`` so competing bookings for the same slot wait on each
other, and the flip of ``is_available`` is a conditional UPDATE whose row
count is checked. Whichever request commits first wins; every other request
sees the slot as taken and gets ``SlotUnavailableError``.

Notifications are published only after the transaction commits.
"""

import logging

from sqlalchemy.orm import Session

from vetcare.models.appointment import (
    CANCELLABLE_STATUSES,
    STATUS_CANCELLED,
    STATUS_PENDING,
    Appointment,
)
from vetcare.models.pet import Pet
from vetcare.models.time_slot import TimeSlot
from vetcare.models.veterinarian import Veterinarian
from vetcare.services import notifications
from vetcare.services.errors import (
    AppointmentAccessError,
    AppointmentNotFoundError,
    AppointmentStateError,
    BookingError,
    BookingFailedError,
    SlotUnavailableError,
    UnauthorizedPetError,
)

logger = logging.getLogger(__name__)

CANCEL_FAILED_MESSAGE = 'Failed to cancel appointment. Please try again.'


def _publish(publisher, notification_type: str, appointment_id: int) -> None:
    if publisher is None:
        return
    try:
        publisher.publish(notification_type, appointment_id)
    except Exception:
        logger.exception('Could not publish %s for appointment %s', notification_type, appointment_id)


def book_appointment(
    db: Session,
    *,
    pet_owner_id: int,
    veterinarian_id: int,
    pet_id: int,
    time_slot_id: int,
    publisher=None,
) -> Appointment:
    try:
        time_slot = db.query(TimeSlot).filter(TimeSlot.id == time_slot_id).with_for_update().first()
        if (
            time_slot is None
            or not time_slot.is_bookable()
            or time_slot.veterinarian_id != veterinarian_id
        ):
            raise SlotUnavailableError()

        pet = db.query(Pet).filter(
            Pet.id == pet_id,
            Pet.owner_id == pet_owner_id,
            Pet.deleted_at.is_(None),
        ).first()
        if pet is None:
            raise UnauthorizedPetError()

        reserved = db.query(TimeSlot).filter(
            TimeSlot.id == time_slot_id,
            TimeSlot.bookable_clause(),
        ).update({TimeSlot.is_available: False}, synchronize_session=False)
        if reserved != 1:
            raise SlotUnavailableError()

        appointment = Appointment(
            pet_owner_id=pet_owner_id,
            veterinarian_id=veterinarian_id,
            pet_id=pet_id,
            time_slot_id=time_slot_id,
            status=STATUS_PENDING,
            scheduled_at=time_slot.start_time,
        )
        db.add(appointment)
        db.commit()
    except BookingError as exc:
        db.rollback()
        logger.info(
            'Appointment booking rejected for user %s on slot %s: %s',
            pet_owner_id,
            time_slot_id,
            exc.message,
        )
        raise
    except Exception as exc:
        db.rollback()
        logger.exception(
            'Appointment booking failed for user %s on slot %s (pet %s)',
            pet_owner_id,
            time_slot_id,
            pet_id,
        )
        raise BookingFailedError() from exc

    db.refresh(appointment)
    logger.info('Appointment %s booked on slot %s by user %s', appointment.id, time_slot_id, pet_owner_id)
    _publish(publisher, notifications.APPOINTMENT_BOOKED, appointment.id)
    return appointment


def cancel_appointment(
    db: Session,
    *,
    appointment_id: int,
    acting_user_id: int,
    publisher=None,
) -> Appointment:
    """Cancel an appointment and give its time slot back.

    Only the pet owner or the assigned veterinarian may cancel. Cancelling an
    appointment that is already cancelled changes nothing, so a slot that has
    been booked again in the meantime stays booked.
    """
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).with_for_update().first()
        if appointment is None:
            raise AppointmentNotFoundError()

        vet_user_id = db.query(Veterinarian.user_id).filter(
            Veterinarian.id == appointment.veterinarian_id,
        ).scalar()
        if acting_user_id not in (appointment.pet_owner_id, vet_user_id):
            raise AppointmentAccessError()

        if appointment.status == STATUS_CANCELLED:
            db.rollback()
            logger.info('Appointment %s already cancelled; slot left untouched', appointment_id)
            return appointment

        if appointment.status not in CANCELLABLE_STATUSES:
            raise AppointmentStateError()

        db.query(TimeSlot).filter(
            TimeSlot.id == appointment.time_slot_id,
        ).update({TimeSlot.is_available: True}, synchronize_session=False)
        appointment.status = STATUS_CANCELLED
        db.commit()
    except BookingError as exc:
        db.rollback()
        logger.info(
            'Appointment cancellation rejected for user %s on appointment %s: %s',
            acting_user_id,
            appointment_id,
            exc.message,
        )
        raise
    except Exception as exc:
        db.rollback()
        logger.exception(
            'Appointment cancellation failed for user %s on appointment %s',
            acting_user_id,
            appointment_id,
        )
        raise BookingFailedError(CANCEL_FAILED_MESSAGE) from exc

    db.refresh(appointment)
    logger.info('Appointment %s cancelled by user %s', appointment_id, acting_user_id)
    _publish(publisher, notifications.APPOINTMENT_CANCELLED, appointment.id)
    return appointment
