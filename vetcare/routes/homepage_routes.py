from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetcare.auth.dependencies import require_roles
from vetcare.database import get_db
from vetcare.models.homepage_content import HomepageContent
from vetcare.models.user import ROLE_ADMIN, User
from vetcare.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['homepage'])

require_admin = require_roles(ROLE_ADMIN)


class HomepageContentRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    image_path: str | None = None
    order: int = Field(default=0, ge=0)
    is_published: bool = False


class HomepageContentResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    image_path: str | None = None
    order: int
    is_published: bool

    class Config:
        from_attributes = True


def get_content_or_404(db: Session, content_id: int) -> HomepageContent:
    content = db.get(HomepageContent, content_id)
    if content is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Homepage content not found.',
        )
    return content


@router.get('/homepage-content', response_model=list[HomepageContentResponse])
def list_published_content(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return HomepageContent.published(db.query(HomepageContent)).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/admin/homepage-content', response_model=list[HomepageContentResponse])
def list_all_content(current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(HomepageContent).order_by(HomepageContent.order.asc(), HomepageContent.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/admin/homepage-content', response_model=HomepageContentResponse, status_code=status.HTTP_201_CREATED)
def create_content(
    data: HomepageContentRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        content = HomepageContent(**data.model_dump())
        db.add(content)
        db.commit()
        db.refresh(content)
        return content
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/admin/homepage-content/{content_id}', response_model=HomepageContentResponse)
def update_content(
    content_id: int,
    data: HomepageContentRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        content = get_content_or_404(db, content_id)
        for field, value in data.model_dump().items():
            setattr(content, field, value)
        db.commit()
        db.refresh(content)
        return content
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/admin/homepage-content/{content_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_content(content_id: int, current_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        db.delete(get_content_or_404(db, content_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
