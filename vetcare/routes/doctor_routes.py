from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from vetcare.core import config
from vetcare.database import get_db
from vetcare.models.user import User
from vetcare.models.veterinarian import Specialization, Veterinarian
from vetcare.routes.common import database_unavailable, ensure_database_ready, paginate
from vetcare.services.notifications import list_bookable_slots

router = APIRouter(tags=['doctors'])

MAX_SEARCH_QUERY_LENGTH = 255


class SpecializationResponse(BaseModel):
    id: int
    name: str
    description: str | None = None

    class Config:
        from_attributes = True


class VeterinarianSummaryResponse(BaseModel):
    id: int
    name: str
    license_number: str
    experience_years: int
    bio: str | None = None
    consultation_fee: Decimal
    profile_image: str | None = None
    specializations: list[SpecializationResponse]


class VeterinarianPageResponse(BaseModel):
    items: list[VeterinarianSummaryResponse]
    page: int
    page_size: int
    total: int


class TimeSlotResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    is_available: bool
    is_blocked: bool

    class Config:
        from_attributes = True


class VeterinarianDetailResponse(VeterinarianSummaryResponse):
    average_rating: float
    available_slots: list[TimeSlotResponse]


def to_summary(veterinarian: Veterinarian) -> dict:
    return {
        'id': veterinarian.id,
        'name': veterinarian.user.name if veterinarian.user else '',
        'license_number': veterinarian.license_number,
        'experience_years': veterinarian.experience_years or 0,
        'bio': veterinarian.bio,
        'consultation_fee': veterinarian.consultation_fee or Decimal('0'),
        'profile_image': veterinarian.profile_image,
        'specializations': [
            SpecializationResponse.model_validate(specialization)
            for specialization in veterinarian.specializations
        ],
    }


def build_veterinarian_query(db: Session, search: str | None = None, specialization: int | None = None):
    query = db.query(Veterinarian).options(
        joinedload(Veterinarian.user),
        joinedload(Veterinarian.specializations),
    )

    if search:
        pattern = f'%{search.strip()}%'
        query = query.join(User, Veterinarian.user_id == User.id).filter(
            or_(User.name.ilike(pattern), Veterinarian.bio.ilike(pattern))
        )

    if specialization is not None:
        query = query.filter(Veterinarian.specializations.any(Specialization.id == specialization))

    return query.order_by(Veterinarian.id.asc())


def list_page(query, page: int) -> VeterinarianPageResponse:
    result = paginate(query, page, config.DOCTORS_PAGE_SIZE)
    return VeterinarianPageResponse(
        items=[VeterinarianSummaryResponse(**to_summary(veterinarian)) for veterinarian in result['items']],
        page=result['page'],
        page_size=result['page_size'],
        total=result['total'],
    )


@router.get('/doctors', response_model=VeterinarianPageResponse)
def list_doctors(
    specialization: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return list_page(build_veterinarian_query(db, specialization=specialization), page)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/doctors/search', response_model=VeterinarianPageResponse)
def search_doctors(
    query: str | None = Query(default=None, max_length=MAX_SEARCH_QUERY_LENGTH),
    specialization: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if specialization is not None and db.get(Specialization, specialization) is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail='The selected specialization does not exist.',
            )
        search = query.strip() if query and query.strip() else None
        return list_page(build_veterinarian_query(db, search=search, specialization=specialization), page)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/doctors/{veterinarian_id}', response_model=VeterinarianDetailResponse)
def show_doctor(veterinarian_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        veterinarian = db.query(Veterinarian).options(
            joinedload(Veterinarian.user),
            joinedload(Veterinarian.specializations),
        ).filter(Veterinarian.id == veterinarian_id).first()

        if veterinarian is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Veterinarian not found.',
            )

        now = datetime.now()
        slots = list_bookable_slots(
            db,
            veterinarian.id,
            now,
            now + timedelta(days=config.AVAILABLE_SLOT_RANGE_DAYS),
        )

        return VeterinarianDetailResponse(
            **to_summary(veterinarian),
            average_rating=veterinarian.average_rating(),
            available_slots=[TimeSlotResponse.model_validate(slot) for slot in slots],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/specializations', response_model=list[SpecializationResponse])
def list_specializations(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Specialization).order_by(Specialization.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
