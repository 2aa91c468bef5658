from datetime import datetime, timedelta

from fastapi import BackgroundTasks

from vetcare.models import Notification
from vetcare.services import booking, notifications
from vetcare.services.notifications import (
    APPOINTMENT_BOOKED,
    APPOINTMENT_CANCELLED,
    BackgroundTaskPublisher,
    Broadcaster,
    availability_channel,
    deliver_appointment_notification,
    user_channel,
)


def booked_appointment(db, make_user, make_veterinarian, make_pet, make_slot):
    owner = make_user(name='Alice Owner')
    veterinarian = make_veterinarian(name='Dr. Rahman')
    pet = make_pet(owner, name='Tiger', species='cat')
    slot = make_slot(veterinarian, start_time=datetime(2030, 3, 4, 10, 0))
    appointment = booking.book_appointment(
        db,
        pet_owner_id=owner.id,
        veterinarian_id=veterinarian.id,
        pet_id=pet.id,
        time_slot_id=slot.id,
    )
    return owner, veterinarian, appointment


def test_broadcaster_delivers_only_to_channel_subscribers() -> None:
    hub = Broadcaster()
    listener = hub.subscribe('user.1')
    other = hub.subscribe('user.2')

    delivered = hub.publish('user.1', 'appointment_booked', {'appointment_id': 7})

    assert delivered == 1
    assert listener.get_nowait() == {'event': 'appointment_booked', 'data': {'appointment_id': 7}}
    assert other.empty()

    hub.unsubscribe('user.1', listener)
    assert hub.publish('user.1', 'appointment_booked', {}) == 0


def test_delivery_stores_notification_for_owner_and_veterinarian(
    db, session_factory, make_user, make_veterinarian, make_pet, make_slot,
) -> None:
    owner, veterinarian, appointment = booked_appointment(db, make_user, make_veterinarian, make_pet, make_slot)

    recipients = deliver_appointment_notification(APPOINTMENT_BOOKED, appointment.id, session_factory)

    assert sorted(recipients) == sorted([owner.id, veterinarian.user_id])
    stored = db.query(Notification).order_by(Notification.user_id.asc()).all()
    assert sorted(item.user_id for item in stored) == sorted(recipients)
    payload = stored[0].data
    assert payload == {
        'type': 'appointment_booked',
        'appointment_id': appointment.id,
        'pet_name': 'Tiger',
        'veterinarian_name': 'Dr. Rahman',
        'pet_owner_name': 'Alice Owner',
        'time_slot': {
            'start_time': '2030-03-04 10:00:00',
            'end_time': '2030-03-04 10:30:00',
        },
        'status': 'pending',
        'message': 'A new appointment has been booked.',
    }


def test_delivery_pushes_payload_to_user_channels(
    db, session_factory, make_user, make_veterinarian, make_pet, make_slot,
) -> None:
    owner, veterinarian, appointment = booked_appointment(db, make_user, make_veterinarian, make_pet, make_slot)
    owner_listener = notifications.broadcaster.subscribe(user_channel(owner.id))
    availability_listener = notifications.broadcaster.subscribe(availability_channel(veterinarian.id))

    try:
        deliver_appointment_notification(APPOINTMENT_CANCELLED, appointment.id, session_factory)

        message = owner_listener.get_nowait()
        assert message['event'] == APPOINTMENT_CANCELLED
        assert message['data']['message'] == 'An appointment has been cancelled.'
        availability = availability_listener.get_nowait()
        assert availability['event'] == 'availability.updated'
        assert availability['data']['veterinarian_id'] == veterinarian.id
    finally:
        notifications.broadcaster.unsubscribe(user_channel(owner.id), owner_listener)
        notifications.broadcaster.unsubscribe(availability_channel(veterinarian.id), availability_listener)


def test_delivery_for_missing_appointment_is_skipped(db, session_factory) -> None:
    assert deliver_appointment_notification(APPOINTMENT_BOOKED, 12345, session_factory) == []
    assert db.query(Notification).count() == 0


def test_delivery_failure_is_logged_not_raised(
    db, session_factory, make_user, make_veterinarian, make_pet, make_slot, monkeypatch, caplog,
) -> None:
    _, _, appointment = booked_appointment(db, make_user, make_veterinarian, make_pet, make_slot)

    def explode(*_args, **_kwargs):
        raise RuntimeError('payload rendering failed')

    monkeypatch.setattr(notifications, 'build_appointment_payload', explode)

    assert deliver_appointment_notification(APPOINTMENT_BOOKED, appointment.id, session_factory) == []
    assert f'Failed to deliver appointment_booked notification for appointment {appointment.id}' in caplog.text
    assert db.query(Notification).count() == 0


def test_background_publisher_defers_delivery_to_background_tasks(session_factory) -> None:
    background_tasks = BackgroundTasks()
    publisher = BackgroundTaskPublisher(background_tasks, session_factory)

    publisher.publish(APPOINTMENT_BOOKED, 42)

    assert len(background_tasks.tasks) == 1
    task = background_tasks.tasks[0]
    assert task.func is deliver_appointment_notification
    assert task.args == (APPOINTMENT_BOOKED, 42, session_factory)


def test_broadcast_availability_lists_only_bookable_slots_in_range(db, make_veterinarian, make_slot) -> None:
    veterinarian = make_veterinarian()
    soon = (datetime.now() + timedelta(days=1)).replace(second=0, microsecond=0)
    open_slot = make_slot(veterinarian, start_time=soon)
    make_slot(veterinarian, start_time=soon + timedelta(hours=1), is_blocked=True)
    make_slot(veterinarian, start_time=soon + timedelta(hours=2), is_available=False)
    make_slot(veterinarian, start_time=soon + timedelta(days=45))

    payload = notifications.broadcast_availability(db, veterinarian.id)

    assert [slot['id'] for slot in payload['available_slots']] == [open_slot.id]
