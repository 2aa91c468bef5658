from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from vetcare.auth.dependencies import get_current_user, require_roles
from vetcare.core import config
from vetcare.database import get_db
from vetcare.models.appointment import Appointment
from vetcare.models.user import ROLE_PET_OWNER, ROLE_VETERINARIAN, User
from vetcare.models.veterinarian import Veterinarian
from vetcare.routes.common import database_unavailable, ensure_database_ready, paginate, to_http_exception
from vetcare.services import booking
from vetcare.services.errors import BookingError
from vetcare.services.notifications import BackgroundTaskPublisher

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    veterinarian_id: int = Field(gt=0)
    pet_id: int = Field(gt=0)
    time_slot_id: int = Field(gt=0)


class AppointmentTimeSlotResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    pet_owner_id: int
    veterinarian_id: int
    pet_id: int
    time_slot_id: int
    status: str
    consultation_notes: str | None = None
    scheduled_at: datetime | None = None
    created_at: datetime | None = None
    pet_name: str | None = None
    veterinarian_name: str | None = None
    time_slot: AppointmentTimeSlotResponse | None = None


class AppointmentPageResponse(BaseModel):
    items: list[AppointmentResponse]
    page: int
    page_size: int
    total: int


def to_response(appointment: Appointment) -> AppointmentResponse:
    veterinarian = appointment.veterinarian
    return AppointmentResponse(
        id=appointment.id,
        pet_owner_id=appointment.pet_owner_id,
        veterinarian_id=appointment.veterinarian_id,
        pet_id=appointment.pet_id,
        time_slot_id=appointment.time_slot_id,
        status=appointment.status,
        consultation_notes=appointment.consultation_notes,
        scheduled_at=appointment.scheduled_at,
        created_at=appointment.created_at,
        pet_name=appointment.pet.name if appointment.pet else None,
        veterinarian_name=veterinarian.user.name if veterinarian and veterinarian.user else None,
        time_slot=(
            AppointmentTimeSlotResponse.model_validate(appointment.time_slot)
            if appointment.time_slot else None
        ),
    )


def get_veterinarian_id(db: Session, user: User) -> int | None:
    return db.query(Veterinarian.id).filter(Veterinarian.user_id == user.id).scalar()


def can_view(db: Session, appointment: Appointment, user: User) -> bool:
    if user.is_admin() or appointment.pet_owner_id == user.id:
        return True
    return user.is_veterinarian() and appointment.veterinarian_id == get_veterinarian_id(db, user)


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = booking.book_appointment(
            db,
            pet_owner_id=current_user.id,
            veterinarian_id=data.veterinarian_id,
            pet_id=data.pet_id,
            time_slot_id=data.time_slot_id,
            publisher=BackgroundTaskPublisher(background_tasks),
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return to_response(appointment)


@router.get('/appointments', response_model=AppointmentPageResponse)
def list_appointments(
    page: int = Query(default=1, ge=1),
    current_user: User = Depends(require_roles(ROLE_PET_OWNER, ROLE_VETERINARIAN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment).options(
            joinedload(Appointment.pet),
            joinedload(Appointment.veterinarian).joinedload(Veterinarian.user),
            joinedload(Appointment.time_slot),
        )
        if current_user.is_veterinarian():
            query = query.filter(Appointment.veterinarian_id == get_veterinarian_id(db, current_user))
        else:
            query = query.filter(Appointment.pet_owner_id == current_user.id)

        result = paginate(
            query.order_by(Appointment.created_at.desc(), Appointment.id.desc()),
            page,
            config.APPOINTMENTS_PAGE_SIZE,
        )
        return AppointmentPageResponse(
            items=[to_response(appointment) for appointment in result['items']],
            page=result['page'],
            page_size=result['page_size'],
            total=result['total'],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def show_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Appointment not found.',
            )
        if not can_view(db, appointment, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You are not allowed to view this appointment.',
            )
        return to_response(appointment)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/appointments/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER, ROLE_VETERINARIAN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = booking.cancel_appointment(
            db,
            appointment_id=appointment_id,
            acting_user_id=current_user.id,
            publisher=BackgroundTaskPublisher(background_tasks),
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return to_response(appointment)
