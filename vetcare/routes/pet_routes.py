from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.auth.dependencies import get_current_user, require_roles
from vetcare.database import get_db
from vetcare.models.pet import GENDERS, SPECIES, Pet
from vetcare.models.user import ROLE_PET_OWNER, User
from vetcare.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['pets'])

require_pet_owner = require_roles(ROLE_PET_OWNER)


class PetRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    species: str
    breed: str = Field(min_length=1, max_length=255)
    age: int = Field(ge=0)
    weight: Decimal = Field(ge=0)
    gender: str
    medical_notes: str | None = None

    @field_validator('species')
    @classmethod
    def validate_species(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SPECIES:
            raise ValueError('Invalid species.')
        return normalized

    @field_validator('gender')
    @classmethod
    def validate_gender(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in GENDERS:
            raise ValueError('Gender must be male or female.')
        return normalized


class PetResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    species: str
    breed: str
    age: int
    weight: Decimal
    gender: str | None = None
    medical_notes: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def get_visible_pet(db: Session, pet_id: int, user: User, allow_admin: bool = False) -> Pet:
    pet = db.query(Pet).filter(Pet.id == pet_id, Pet.deleted_at.is_(None)).first()
    if pet is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Pet not found.',
        )
    if pet.owner_id != user.id and not (allow_admin and user.is_admin()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Unauthorized access to pet record.',
        )
    return pet


@router.get('/pets', response_model=list[PetResponse])
def list_pets(current_user: User = Depends(require_pet_owner), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Pet).filter(
            Pet.owner_id == current_user.id,
            Pet.deleted_at.is_(None),
        ).order_by(Pet.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/pets', response_model=PetResponse, status_code=status.HTTP_201_CREATED)
def create_pet(
    data: PetRequest,
    current_user: User = Depends(require_pet_owner),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        pet = Pet(owner_id=current_user.id, **data.model_dump())
        db.add(pet)
        db.commit()
        db.refresh(pet)
        return pet
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/pets/{pet_id}', response_model=PetResponse)
def show_pet(pet_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_visible_pet(db, pet_id, current_user, allow_admin=True)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/pets/{pet_id}', response_model=PetResponse)
def update_pet(
    pet_id: int,
    data: PetRequest,
    current_user: User = Depends(require_pet_owner),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        pet = get_visible_pet(db, pet_id, current_user)
        for field, value in data.model_dump().items():
            setattr(pet, field, value)
        db.commit()
        db.refresh(pet)
        return pet
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/pets/{pet_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_pet(pet_id: int, current_user: User = Depends(require_pet_owner), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        pet = get_visible_pet(db, pet_id, current_user)
        pet.soft_delete()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
