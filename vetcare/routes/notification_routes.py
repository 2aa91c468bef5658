from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.auth.dependencies import get_current_user
from vetcare.database import get_db
from vetcare.models.notification import Notification
from vetcare.models.user import User
from vetcare.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    type: str
    data: dict
    read_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


@router.get('/notifications', response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Notification).filter(Notification.user_id == current_user.id)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/notifications/{notification_id}/read', response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        ).first()
        if notification is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Notification not found.',
            )
        if notification.read_at is None:
            notification.read_at = datetime.now()
            db.commit()
            db.refresh(notification)
        return notification
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
