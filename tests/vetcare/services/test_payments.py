from decimal import Decimal

import pytest

from vetcare.models import Appointment, Payment
from vetcare.models.payment import calculate_total
from vetcare.services import booking, payments
from vetcare.services.errors import AppointmentNotFoundError, PaymentError, PaymentNotFoundError


@pytest.fixture
def appointment(db, make_user, make_veterinarian, make_pet, make_slot):
    owner = make_user()
    veterinarian = make_veterinarian(consultation_fee='750.00')
    pet = make_pet(owner)
    slot = make_slot(veterinarian)
    return booking.book_appointment(
        db,
        pet_owner_id=owner.id,
        veterinarian_id=veterinarian.id,
        pet_id=pet.id,
        time_slot_id=slot.id,
    )


@pytest.mark.parametrize(
    ('fee', 'expected'),
    [
        (Decimal('0'), Decimal('50.00')),
        (Decimal('500.00'), Decimal('550.00')),
        (Decimal('1234.56'), Decimal('1284.56')),
    ],
)
def test_calculate_total_adds_flat_service_charge(fee, expected) -> None:
    assert calculate_total(fee) == expected


def test_create_payment_charges_consultation_fee_plus_service_charge(db, appointment) -> None:
    payment = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')

    assert payment.status == 'pending'
    assert payment.amount == Decimal('750.00')
    assert payment.service_charge == Decimal('50.00')
    assert payment.total_amount == Decimal('800.00')
    assert payment.transaction_id.startswith('BKASH-')


def test_create_payment_rejects_other_users_appointment(db, appointment, make_user) -> None:
    stranger = make_user()

    with pytest.raises(AppointmentNotFoundError):
        payments.create_payment(db, appointment.id, stranger.id, 'nagad')


def test_create_payment_rejects_cancelled_appointment(db, appointment) -> None:
    booking.cancel_appointment(db, appointment_id=appointment.id, acting_user_id=appointment.pet_owner_id)

    with pytest.raises(PaymentError) as exception_info:
        payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'nagad')

    assert exception_info.value.message == 'Cancelled appointments cannot be paid.'


def test_completing_payment_confirms_appointment_and_encrypts_response(db, appointment) -> None:
    payment = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'nagad')
    gateway_response = {'trxID': 'ABC123', 'statusCode': '0000'}

    completed = payments.complete_payment(db, payment.id, appointment.pet_owner_id, gateway_response)

    assert completed.status == 'completed'
    assert 'ABC123' not in completed.gateway_response
    assert payments.decrypt_gateway_response(completed.gateway_response) == gateway_response
    db.expire_all()
    assert db.get(Appointment, appointment.id).status == 'confirmed'

    with pytest.raises(PaymentError) as exception_info:
        payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')
    assert exception_info.value.message == 'This appointment has already been paid.'


def test_failed_payment_leaves_appointment_pending_and_cannot_be_completed(db, appointment) -> None:
    payment = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')

    failed = payments.fail_payment(db, payment.id, appointment.pet_owner_id, {'statusCode': '2062'})

    assert failed.status == 'failed'
    db.expire_all()
    assert db.get(Appointment, appointment.id).status == 'pending'
    with pytest.raises(PaymentError):
        payments.complete_payment(db, payment.id, appointment.pet_owner_id, {})


def test_payment_lookup_is_scoped_to_payer(db, appointment, make_user) -> None:
    payment = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')
    stranger = make_user()

    with pytest.raises(PaymentNotFoundError):
        payments.complete_payment(db, payment.id, stranger.id, {})

    assert db.get(Payment, payment.id).status == 'pending'


def test_opening_a_new_payment_supersedes_pending_ones(db, appointment) -> None:
    first = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')
    second = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'nagad')

    db.expire_all()
    assert db.get(Payment, first.id).status == 'failed'
    assert db.get(Payment, second.id).status == 'pending'

    with pytest.raises(PaymentError) as exception_info:
        payments.complete_payment(db, first.id, appointment.pet_owner_id, {'trxID': 'OLD'})
    assert exception_info.value.message == 'Payment is already failed.'

    payments.complete_payment(db, second.id, appointment.pet_owner_id, {'trxID': 'NEW'})
    completed = db.query(Payment).filter(
        Payment.appointment_id == appointment.id,
        Payment.status == 'completed',
    ).count()
    assert completed == 1


def test_appointment_is_charged_at_most_once(db, appointment) -> None:
    first = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')
    # A second pending payment written outside create_payment, e.g. by a concurrent request.
    stray = Payment(
        appointment_id=appointment.id,
        user_id=appointment.pet_owner_id,
        gateway='nagad',
        transaction_id='NAGAD-STRAY',
        amount=Decimal('750.00'),
        service_charge=Decimal('50.00'),
        total_amount=Decimal('800.00'),
        status='pending',
    )
    db.add(stray)
    db.commit()

    payments.complete_payment(db, first.id, appointment.pet_owner_id, {'trxID': 'A1'})
    with pytest.raises(PaymentError) as exception_info:
        payments.complete_payment(db, stray.id, appointment.pet_owner_id, {'trxID': 'A2'})

    assert exception_info.value.message == 'This appointment has already been paid.'
    db.expire_all()
    assert db.get(Payment, stray.id).status == 'pending'
    completed = db.query(Payment).filter(
        Payment.appointment_id == appointment.id,
        Payment.status == 'completed',
    ).count()
    assert completed == 1


def test_payment_cannot_complete_after_appointment_is_cancelled(db, appointment) -> None:
    payment = payments.create_payment(db, appointment.id, appointment.pet_owner_id, 'bkash')
    booking.cancel_appointment(db, appointment_id=appointment.id, acting_user_id=appointment.pet_owner_id)

    with pytest.raises(PaymentError) as exception_info:
        payments.complete_payment(db, payment.id, appointment.pet_owner_id, {'trxID': 'LATE'})

    assert exception_info.value.message == 'Cancelled appointments cannot be paid.'
    db.expire_all()
    assert db.get(Payment, payment.id).status == 'pending'
    assert db.get(Appointment, appointment.id).status == 'cancelled'
