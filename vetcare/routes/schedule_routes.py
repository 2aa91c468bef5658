from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.auth.dependencies import require_roles
from vetcare.database import get_db
from vetcare.models.user import ROLE_VETERINARIAN, User
from vetcare.models.veterinarian import Veterinarian
from vetcare.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from vetcare.services import schedule
from vetcare.services.errors import BookingError

router = APIRouter(tags=['schedule'])

require_veterinarian = require_roles(ROLE_VETERINARIAN)


class CreateTimeSlotRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class ScheduleSlotResponse(BaseModel):
    id: int
    veterinarian_id: int
    start_time: datetime
    end_time: datetime
    is_available: bool
    is_blocked: bool

    class Config:
        from_attributes = True


def get_veterinarian_profile(db: Session, user: User) -> Veterinarian:
    veterinarian = db.query(Veterinarian).filter(Veterinarian.user_id == user.id).first()
    if veterinarian is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Veterinarian profile not found.',
        )
    return veterinarian


@router.get('/slots', response_model=list[ScheduleSlotResponse])
def list_my_slots(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    current_user: User = Depends(require_veterinarian),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        veterinarian = get_veterinarian_profile(db, current_user)
        return schedule.list_time_slots(db, veterinarian.id, start, end)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/slots', response_model=ScheduleSlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: CreateTimeSlotRequest,
    current_user: User = Depends(require_veterinarian),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        veterinarian = get_veterinarian_profile(db, current_user)
        return schedule.create_time_slot(db, veterinarian.id, data.start_time, data.end_time)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/slots/{slot_id}/block', response_model=ScheduleSlotResponse)
def block_slot(slot_id: int, current_user: User = Depends(require_veterinarian), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        veterinarian = get_veterinarian_profile(db, current_user)
        return schedule.set_slot_blocked(db, veterinarian.id, slot_id, True)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/slots/{slot_id}/unblock', response_model=ScheduleSlotResponse)
def unblock_slot(slot_id: int, current_user: User = Depends(require_veterinarian), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        veterinarian = get_veterinarian_profile(db, current_user)
        return schedule.set_slot_blocked(db, veterinarian.id, slot_id, False)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/slots/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(slot_id: int, current_user: User = Depends(require_veterinarian), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        veterinarian = get_veterinarian_profile(db, current_user)
        schedule.delete_time_slot(db, veterinarian.id, slot_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
