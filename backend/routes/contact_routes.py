import logging
import re
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_admin
from backend.auth.repository import UserRecord
from backend.database import get_db
from backend.models.contact_inquiry import ContactInquiry
from backend.routes.auth_routes import normalize_email_field
from backend.routes.common import (
    DATABASE_UNAVAILABLE,
    LIKE_ESCAPE,
    PaginationResponse,
    as_naive_utc,
    build_pagination,
    contains_pattern,
    utcnow,
)

router = APIRouter(tags=['contact'])

logger = logging.getLogger(__name__)

INQUIRY_STATUSES = ('new', 'responded', 'closed')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{0,15}$')
RECENT_WINDOW_DAYS = 7
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _bounded_text(value: str, min_length: int, max_length: int, label: str) -> str:
    normalized = value.strip()
    if len(normalized) < min_length:
        raise ValueError(f'{label} must be at least {min_length} characters')
    if len(normalized) > max_length:
        raise ValueError(f'{label} must not exceed {max_length} characters')
    return normalized


def _validate_status(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in INQUIRY_STATUSES:
        raise ValueError(f'Status must be one of: {", ".join(INQUIRY_STATUSES)}')
    return normalized


class CreateContactInquiryRequest(BaseModel):
    name: str
    email: str
    phone: str | None = None
    subject: str | None = None
    message: str
    service_interest: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _bounded_text(value, 2, 100, 'Name')

    @field_validator('email')
    @classmethod
    def validate_email_address(cls, value: str) -> str:
        return normalize_email_field(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None

        normalized = _bounded_text(value, 10, 20, 'Phone number')
        if not PHONE_PATTERN.match(normalized):
            raise ValueError('Please provide a valid phone number')
        return normalized

    @field_validator('subject')
    @classmethod
    def validate_subject(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return _bounded_text(value, 3, 200, 'Subject')

    @field_validator('message')
    @classmethod
    def validate_message(cls, value: str) -> str:
        return _bounded_text(value, 10, 2000, 'Message')

    @field_validator('service_interest')
    @classmethod
    def validate_service_interest(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return _bounded_text(value, 1, 100, 'Service interest')


class UpdateContactInquiryRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_inquiry_status(cls, value: str) -> str:
        return _validate_status(value)


class ContactInquiryResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None = None
    subject: str | None = None
    message: str
    service_interest: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ContactInquiryListResponse(BaseModel):
    data: list[ContactInquiryResponse]
    pagination: PaginationResponse


class ContactInquiryStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    recent: int


def get_inquiry_or_404(inquiry_id: str, db: Session) -> ContactInquiry:
    inquiry = db.get(ContactInquiry, inquiry_id)
    if inquiry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Contact inquiry not found.',
        )
    return inquiry


@router.post('', response_model=ContactInquiryResponse, status_code=status.HTTP_201_CREATED)
def create_contact_inquiry(data: CreateContactInquiryRequest, db: Session = Depends(get_db)):
    try:
        inquiry = ContactInquiry(**data.model_dump(), status='new')
        db.add(inquiry)
        db.commit()
        db.refresh(inquiry)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Contact inquiry %s received', inquiry.id)
    return inquiry


@router.get('', response_model=ContactInquiryListResponse)
def list_contact_inquiries(
    inquiry_status: str | None = Query(default=None, alias='status'),
    search: str | None = Query(default=None, max_length=100),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    del admin
    if inquiry_status is not None:
        try:
            inquiry_status = _validate_status(inquiry_status)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        query = db.query(ContactInquiry)
        if inquiry_status:
            query = query.filter(ContactInquiry.status == inquiry_status)
        if search and search.strip():
            pattern = contains_pattern(search)
            query = query.filter(
                or_(
                    func.lower(ContactInquiry.name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(ContactInquiry.email).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(ContactInquiry.subject).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(ContactInquiry.message).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(ContactInquiry.service_interest).like(pattern, escape=LIKE_ESCAPE),
                )
            )
        if date_from:
            query = query.filter(ContactInquiry.created_at >= as_naive_utc(date_from))
        if date_to:
            query = query.filter(ContactInquiry.created_at <= as_naive_utc(date_to))

        total_count = query.count()
        inquiries = (
            query.order_by(ContactInquiry.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return ContactInquiryListResponse(
        data=[ContactInquiryResponse.model_validate(inquiry) for inquiry in inquiries],
        pagination=build_pagination(page, limit, total_count),
    )


@router.get('/stats', response_model=ContactInquiryStatsResponse)
def get_contact_inquiry_stats(
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    del admin
    try:
        counts = dict(
            db.query(ContactInquiry.status, func.count(ContactInquiry.id))
            .group_by(ContactInquiry.status)
            .all()
        )
        recent = db.query(ContactInquiry).filter(
            ContactInquiry.created_at >= utcnow() - timedelta(days=RECENT_WINDOW_DAYS),
        ).count()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    by_status = {inquiry_status: counts.get(inquiry_status, 0) for inquiry_status in INQUIRY_STATUSES}
    return ContactInquiryStatsResponse(total=sum(counts.values()), by_status=by_status, recent=recent)


@router.get('/{inquiry_id}', response_model=ContactInquiryResponse)
def get_contact_inquiry(
    inquiry_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    del admin
    return get_inquiry_or_404(inquiry_id, db)


@router.patch('/{inquiry_id}', response_model=ContactInquiryResponse)
def update_contact_inquiry(
    inquiry_id: str,
    data: UpdateContactInquiryRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    inquiry = get_inquiry_or_404(inquiry_id, db)

    try:
        inquiry.status = data.status
        db.commit()
        db.refresh(inquiry)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Contact inquiry %s marked %s by %s', inquiry.id, inquiry.status, admin.id)
    return inquiry


@router.delete('/{inquiry_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_contact_inquiry(
    inquiry_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    inquiry = get_inquiry_or_404(inquiry_id, db)

    try:
        db.delete(inquiry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Contact inquiry %s deleted by %s', inquiry_id, admin.id)
