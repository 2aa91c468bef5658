"""Failures raised by the booking services.

Precondition failures are expected rejections reported back to the user as-is.
``BookingFailedError`` wraps anything unexpected and only ever carries a
generic message; the underlying cause is logged where it is raised.
"""

from fastapi import status


class BookingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    message = 'The request could not be completed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class SlotUnavailableError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    message = 'The selected time slot is no longer available.'


class UnauthorizedPetError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    message = 'The selected pet does not belong to you.'


class AppointmentNotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Appointment not found.'


class AppointmentAccessError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    message = 'You are not authorized to cancel this appointment.'


class AppointmentStateError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    message = 'This appointment can no longer be cancelled.'


class BookingFailedError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = 'Failed to book appointment. Please try again.'


class InvalidTimeSlotError(BookingError):
    message = 'The time slot is invalid.'


class ScheduleConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    message = 'This time overlaps another slot in your schedule.'


class TimeSlotNotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Time slot not found.'


class PaymentError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    message = 'This payment cannot be processed.'


class PaymentNotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Payment not found.'
