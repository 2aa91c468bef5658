"""Appointment notifications and availability broadcasts.

Booking and cancellation publish after their transaction commits. Delivery
runs outside the request (FastAPI background tasks), opens its own session,
stores one ``Notification`` row per recipient and pushes the same payload to
the in-process broadcaster. Delivery failures are logged and never reach the
booking transaction.
"""

import logging
import queue
from collections import defaultdict
from datetime import datetime, timedelta
from threading import Lock

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from vetcare.core import config
from vetcare.database import SessionLocal
from vetcare.models.appointment import Appointment
from vetcare.models.notification import Notification
from vetcare.models.time_slot import TimeSlot
from vetcare.models.veterinarian import Veterinarian

logger = logging.getLogger(__name__)

APPOINTMENT_BOOKED = 'appointment_booked'
APPOINTMENT_CANCELLED = 'appointment_cancelled'
NOTIFICATION_MESSAGES = {
    APPOINTMENT_BOOKED: 'A new appointment has been booked.',
    APPOINTMENT_CANCELLED: 'An appointment has been cancelled.',
}
AVAILABILITY_UPDATED = 'availability.updated'


def user_channel(user_id: int) -> str:
    return f'user.{user_id}'


def availability_channel(veterinarian_id: int) -> str:
    return f'doctor-availability.{veterinarian_id}'


class Broadcaster:
    """In-process pub/sub keyed by channel name."""

    def __init__(self):
        self._lock = Lock()
        self._subscribers: dict[str, list[queue.Queue]] = defaultdict(list)

    def subscribe(self, channel: str) -> queue.Queue:
        subscriber: queue.Queue = queue.Queue()
        with self._lock:
            self._subscribers[channel].append(subscriber)
        return subscriber

    def unsubscribe(self, channel: str, subscriber: queue.Queue) -> None:
        with self._lock:
            if subscriber in self._subscribers.get(channel, []):
                self._subscribers[channel].remove(subscriber)

    def publish(self, channel: str, event: str, payload: dict) -> int:
        with self._lock:
            subscribers = list(self._subscribers.get(channel, []))
        for subscriber in subscribers:
            subscriber.put_nowait({'event': event, 'data': payload})
        return len(subscribers)


broadcaster = Broadcaster()


def build_appointment_payload(appointment: Appointment, notification_type: str) -> dict:
    time_slot = appointment.time_slot
    return {
        'type': notification_type,
        'appointment_id': appointment.id,
        'pet_name': appointment.pet.name if appointment.pet else None,
        'veterinarian_name': appointment.veterinarian.user.name if appointment.veterinarian else None,
        'pet_owner_name': appointment.pet_owner.name if appointment.pet_owner else None,
        'time_slot': {
            'start_time': time_slot.start_time.isoformat(sep=' ') if time_slot else None,
            'end_time': time_slot.end_time.isoformat(sep=' ') if time_slot else None,
        },
        'status': appointment.status,
        'message': NOTIFICATION_MESSAGES[notification_type],
    }


def list_bookable_slots(db: Session, veterinarian_id: int, start: datetime, end: datetime) -> list[TimeSlot]:
    return db.query(TimeSlot).filter(
        TimeSlot.veterinarian_id == veterinarian_id,
        TimeSlot.bookable_clause(),
        TimeSlot.start_time >= start,
        TimeSlot.start_time <= end,
    ).order_by(TimeSlot.start_time.asc()).all()


def broadcast_availability(db: Session, veterinarian_id: int) -> dict:
    now = datetime.now()
    slots = list_bookable_slots(db, veterinarian_id, now, now + timedelta(days=config.AVAILABLE_SLOT_RANGE_DAYS))
    payload = {
        'veterinarian_id': veterinarian_id,
        'available_slots': [
            {'id': slot.id, 'start_time': slot.start_time.isoformat(), 'end_time': slot.end_time.isoformat()}
            for slot in slots
        ],
        'updated_at': now.isoformat(),
    }
    broadcaster.publish(availability_channel(veterinarian_id), AVAILABILITY_UPDATED, payload)
    return payload


def deliver_appointment_notification(
    notification_type: str,
    appointment_id: int,
    session_factory=None,
) -> list[int]:
    """Notify the pet owner and the veterinarian; returns the notified user ids."""
    db = (session_factory or SessionLocal)()
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            logger.warning('Skipping %s notification: appointment %s not found', notification_type, appointment_id)
            return []

        payload = build_appointment_payload(appointment, notification_type)
        recipient_ids = [appointment.pet_owner_id]
        vet_user_id = db.query(Veterinarian.user_id).filter(
            Veterinarian.id == appointment.veterinarian_id,
        ).scalar()
        if vet_user_id is not None and vet_user_id not in recipient_ids:
            recipient_ids.append(vet_user_id)

        notifications = [
            Notification(user_id=recipient_id, type=notification_type, data=payload)
            for recipient_id in recipient_ids
        ]
        db.add_all(notifications)
        db.commit()

        for recipient_id in recipient_ids:
            broadcaster.publish(user_channel(recipient_id), notification_type, payload)
        broadcast_availability(db, appointment.veterinarian_id)

        logger.info(
            'Delivered %s notification for appointment %s to users %s',
            notification_type,
            appointment_id,
            recipient_ids,
        )
        return recipient_ids
    except Exception:
        db.rollback()
        logger.exception('Failed to deliver %s notification for appointment %s', notification_type, appointment_id)
        return []
    finally:
        db.close()


class BackgroundTaskPublisher:
    """Schedules notification delivery to run after the response is sent."""

    def __init__(self, background_tasks: BackgroundTasks, session_factory=None):
        self.background_tasks = background_tasks
        self.session_factory = session_factory

    def publish(self, notification_type: str, appointment_id: int) -> None:
        self.background_tasks.add_task(
            deliver_appointment_notification,
            notification_type,
            appointment_id,
            self.session_factory,
        )

