from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.auth import jwt_handler
from vetcare.auth.dependencies import get_current_user
from vetcare.auth.passwords import hash_password, verify_password
from vetcare.auth.rate_limiter import login_rate_limit
from vetcare.database import get_db
from vetcare.models.user import ROLE_PET_OWNER, ROLE_VETERINARIAN, User
from vetcare.models.veterinarian import Veterinarian
from vetcare.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['auth'])

MIN_PASSWORD_LENGTH = 8
REGISTRABLE_ROLES = {ROLE_PET_OWNER, ROLE_VETERINARIAN}


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str
    password: str
    role: str = ROLE_PET_OWNER
    phone: str | None = None
    address: str | None = None
    license_number: str | None = None
    consultation_fee: Decimal | None = Field(default=None, ge=0)
    experience_years: int = Field(default=0, ge=0)
    bio: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized or normalized.startswith('@') or normalized.endswith('@'):
            raise ValueError('A valid email address is required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in REGISTRABLE_ROLES:
            raise ValueError('Role must be pet_owner or veterinarian.')
        return normalized


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    role: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone: str | None = None
    address: str | None = None

    class Config:
        from_attributes = True


def issue_token(user: User) -> TokenResponse:
    token = jwt_handler.create_access_token(subject=str(user.id), role=user.role)
    return TokenResponse(access_token=token, role=user.role)


@router.post('/register', response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    if data.role == ROLE_VETERINARIAN and not (data.license_number and data.license_number.strip()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Veterinarians must provide a license number.',
        )

    ensure_database_ready()

    try:
        if db.query(User.id).filter(User.email == data.email).first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='An account with this email already exists.',
            )

        user = User(
            name=data.name.strip(),
            email=data.email,
            hashed_password=hash_password(data.password),
            role=data.role,
            phone=data.phone,
            address=data.address,
        )
        db.add(user)
        db.flush()

        if data.role == ROLE_VETERINARIAN:
            db.add(
                Veterinarian(
                    user_id=user.id,
                    license_number=data.license_number.strip(),
                    experience_years=data.experience_years,
                    bio=data.bio,
                    consultation_fee=data.consultation_fee or 0,
                )
            )

        db.commit()
        db.refresh(user)
        return issue_token(user)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='An account with these details already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/login', response_model=TokenResponse)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    _: None = Depends(login_rate_limit),
):
    ensure_database_ready()

    try:
        user = db.query(User).filter(User.email == data.email).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='The provided credentials do not match our records.',
        )
    return issue_token(user)


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
