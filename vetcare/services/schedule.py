"""Veterinarian schedule management: creating, blocking and removing slots."""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.models.appointment import Appointment
from vetcare.models.time_slot import TimeSlot
from vetcare.services import notifications
from vetcare.services.errors import InvalidTimeSlotError, ScheduleConflictError, TimeSlotNotFoundError

logger = logging.getLogger(__name__)


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def _broadcast_availability(db: Session, veterinarian_id: int) -> None:
    # Called after commit; failures are only logged.
    try:
        notifications.broadcast_availability(db, veterinarian_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Could not broadcast availability for veterinarian %s', veterinarian_id)


def get_owned_slot(db: Session, veterinarian_id: int, slot_id: int) -> TimeSlot:
    time_slot = db.query(TimeSlot).filter(
        TimeSlot.id == slot_id,
        TimeSlot.veterinarian_id == veterinarian_id,
    ).first()
    if time_slot is None:
        raise TimeSlotNotFoundError()
    return time_slot


def create_time_slot(
    db: Session,
    veterinarian_id: int,
    start_time: datetime,
    end_time: datetime,
    now: datetime | None = None,
) -> TimeSlot:
    now = now or datetime.now()
    start_time = to_local_naive(start_time)
    end_time = to_local_naive(end_time)

    if end_time <= start_time:
        raise InvalidTimeSlotError('End time must be after start time.')
    if start_time <= now:
        raise InvalidTimeSlotError('Time slots must start in the future.')

    overlapping = db.query(TimeSlot).filter(
        TimeSlot.veterinarian_id == veterinarian_id,
        TimeSlot.start_time < end_time,
        TimeSlot.end_time > start_time,
    ).first()
    if overlapping:
        raise ScheduleConflictError()

    time_slot = TimeSlot(
        veterinarian_id=veterinarian_id,
        start_time=start_time,
        end_time=end_time,
        is_available=True,
        is_blocked=False,
    )
    db.add(time_slot)
    db.commit()
    db.refresh(time_slot)

    logger.info('Veterinarian %s opened slot %s (%s - %s)', veterinarian_id, time_slot.id, start_time, end_time)
    _broadcast_availability(db, veterinarian_id)
    return time_slot


def set_slot_blocked(db: Session, veterinarian_id: int, slot_id: int, blocked: bool) -> TimeSlot:
    time_slot = get_owned_slot(db, veterinarian_id, slot_id)
    time_slot.is_blocked = blocked
    db.commit()
    db.refresh(time_slot)

    logger.info('Veterinarian %s %s slot %s', veterinarian_id, 'blocked' if blocked else 'unblocked', slot_id)
    _broadcast_availability(db, veterinarian_id)
    return time_slot


def delete_time_slot(db: Session, veterinarian_id: int, slot_id: int) -> None:
    time_slot = get_owned_slot(db, veterinarian_id, slot_id)

    has_appointments = db.query(Appointment.id).filter(Appointment.time_slot_id == slot_id).first()
    if has_appointments:
        raise ScheduleConflictError('Slots with appointment history cannot be deleted; block them instead.')

    db.delete(time_slot)
    db.commit()

    logger.info('Veterinarian %s removed slot %s', veterinarian_id, slot_id)
    _broadcast_availability(db, veterinarian_id)


def list_time_slots(
    db: Session,
    veterinarian_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[TimeSlot]:
    query = db.query(TimeSlot).filter(TimeSlot.veterinarian_id == veterinarian_id)
    if start is not None:
        query = query.filter(TimeSlot.start_time >= to_local_naive(start))
    if end is not None:
        query = query.filter(TimeSlot.start_time <= to_local_naive(end))
    return query.order_by(TimeSlot.start_time.asc()).all()
