from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.auth.dependencies import require_roles
from vetcare.database import get_db
from vetcare.models.payment import GATEWAYS
from vetcare.models.user import ROLE_PET_OWNER, User
from vetcare.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from vetcare.services import payments
from vetcare.services.errors import BookingError

router = APIRouter(tags=['payments'])

require_pet_owner = require_roles(ROLE_PET_OWNER)


class CreatePaymentRequest(BaseModel):
    gateway: str

    @field_validator('gateway')
    @classmethod
    def validate_gateway(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in GATEWAYS:
            raise ValueError('Gateway must be bkash or nagad.')
        return normalized


class GatewayResultRequest(BaseModel):
    gateway_response: dict


class PaymentResponse(BaseModel):
    id: int
    appointment_id: int
    gateway: str
    transaction_id: str
    amount: Decimal
    service_charge: Decimal
    total_amount: Decimal
    status: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post(
    '/appointments/{appointment_id}/payments',
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_payment(
    appointment_id: int,
    data: CreatePaymentRequest,
    current_user: User = Depends(require_pet_owner),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return payments.create_payment(db, appointment_id, current_user.id, data.gateway)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/payments/{payment_id}/complete', response_model=PaymentResponse)
def complete_payment(
    payment_id: int,
    data: GatewayResultRequest,
    current_user: User = Depends(require_pet_owner),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return payments.complete_payment(db, payment_id, current_user.id, data.gateway_response)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/payments/{payment_id}/fail', response_model=PaymentResponse)
def fail_payment(
    payment_id: int,
    data: GatewayResultRequest,
    current_user: User = Depends(require_pet_owner),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return payments.fail_payment(db, payment_id, current_user.id, data.gateway_response)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
