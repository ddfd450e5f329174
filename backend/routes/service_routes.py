import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_admin
from backend.auth.repository import UserRecord
from backend.database import get_db
from backend.models.booking import Booking
from backend.models.service import Service
from backend.models.service_category import ServiceCategory
from backend.routes.booking_routes import ACTIVE_STATUSES
from backend.routes.common import (
    LIKE_ESCAPE,
    PaginationResponse,
    apply_changes,
    build_pagination,
    contains_pattern,
    database_unavailable,
    required_text,
    strip_optional,
)
from backend.routes.service_category_routes import ServiceCategoryResponse, build_category_response

router = APIRouter(tags=['services'])

logger = logging.getLogger(__name__)

PRICE_TYPES = ('fixed', 'hourly', 'package')
MAX_PAGE_SIZE = 100
SERVICE_CONFLICT = 'A service with this name already exists in the specified category.'
REQUIRED_SERVICE_FIELDS = ('name', 'category_id', 'price_type', 'active')


def _validate_price_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in PRICE_TYPES:
        raise ValueError(f'Price type must be one of: {", ".join(PRICE_TYPES)}')
    return normalized


def _validate_base_price(value: float | None) -> float | None:
    if value is not None and value < 0:
        raise ValueError('Price must be non-negative')
    return value


def _validate_duration(value: int | None) -> int | None:
    if value is not None and value < 1:
        raise ValueError('Duration must be at least 1 minute')
    return value


class ServiceFields(BaseModel):
    subcategory: str | None = None
    description: str | None = None
    base_price: float | None = None
    duration_minutes: int | None = None
    features: list[str] | dict[str, Any] | None = None

    @field_validator('subcategory')
    @classmethod
    def validate_subcategory(cls, value: str | None) -> str | None:
        return strip_optional(value, 100, 'Subcategory')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return strip_optional(value, 2000, 'Description')

    @field_validator('base_price')
    @classmethod
    def validate_base_price(cls, value: float | None) -> float | None:
        return _validate_base_price(value)

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return _validate_duration(value)


class CreateServiceRequest(ServiceFields):
    name: str
    category_id: str
    price_type: str = 'fixed'
    active: bool = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return required_text(value, 255, 'Service name')

    @field_validator('category_id')
    @classmethod
    def validate_category_id(cls, value: str) -> str:
        return required_text(value, 100, 'Category ID')

    @field_validator('price_type')
    @classmethod
    def validate_price_type(cls, value: str) -> str:
        return _validate_price_type(value)


class UpdateServiceRequest(ServiceFields):
    name: str | None = None
    category_id: str | None = None
    price_type: str | None = None
    active: bool | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return required_text(value, 255, 'Service name')

    @field_validator('category_id')
    @classmethod
    def validate_category_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return required_text(value, 100, 'Category ID')

    @field_validator('price_type')
    @classmethod
    def validate_price_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_price_type(value)


class ServiceResponse(BaseModel):
    id: str
    name: str
    category_id: str
    subcategory: str | None = None
    description: str | None = None
    base_price: float | None = None
    price_type: str
    duration_minutes: int | None = None
    features: list[str] | dict[str, Any] | None = None
    active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ServiceListResponse(BaseModel):
    data: list[ServiceResponse]
    pagination: PaginationResponse


class CategoryServicesResponse(BaseModel):
    category: ServiceCategoryResponse
    data: list[ServiceResponse]


def get_service_or_404(service_id: str, db: Session) -> Service:
    service = db.get(Service, service_id)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service not found.',
        )
    return service


def ensure_category_exists(category_id: str, db: Session) -> None:
    if db.get(ServiceCategory, category_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Service category with the specified ID does not exist.',
        )


def ensure_unique_name(db: Session, name: str, category_id: str, exclude_id: str | None = None) -> None:
    query = db.query(Service).filter(Service.name == name, Service.category_id == category_id)
    if exclude_id is not None:
        query = query.filter(Service.id != exclude_id)
    if query.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SERVICE_CONFLICT)


@router.get('', response_model=ServiceListResponse)
def list_services(
    category_id: str | None = Query(default=None),
    category_slug: str | None = Query(default=None),
    subcategory: str | None = Query(default=None),
    active: bool | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    price_min: float | None = Query(default=None, ge=0),
    price_max: float | None = Query(default=None, ge=0),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Service).join(ServiceCategory, Service.category_id == ServiceCategory.id)
        if category_id:
            query = query.filter(Service.category_id == category_id)
        elif category_slug:
            query = query.filter(ServiceCategory.slug == category_slug.strip().lower())
        if subcategory:
            query = query.filter(Service.subcategory == subcategory.strip())
        if active is not None:
            query = query.filter(Service.active.is_(active))
        if search and search.strip():
            pattern = contains_pattern(search)
            query = query.filter(
                or_(
                    func.lower(Service.name).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Service.description).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(Service.subcategory).like(pattern, escape=LIKE_ESCAPE),
                )
            )
        if price_min is not None:
            query = query.filter(Service.base_price >= price_min)
        if price_max is not None:
            query = query.filter(Service.base_price <= price_max)

        total_count = query.count()
        services = (
            query.order_by(ServiceCategory.sort_order.asc(), ServiceCategory.name.asc(), Service.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return ServiceListResponse(
        data=[ServiceResponse.model_validate(service) for service in services],
        pagination=build_pagination(page, limit, total_count),
    )


@router.get('/category/{category_slug}', response_model=CategoryServicesResponse)
def list_services_by_category(category_slug: str, db: Session = Depends(get_db)):
    try:
        category = db.query(ServiceCategory).filter(ServiceCategory.slug == category_slug).first()
        services = []
        if category is not None:
            services = (
                db.query(Service)
                .filter(Service.category_id == category.id, Service.active.is_(True))
                .order_by(Service.subcategory.asc(), Service.name.asc())
                .all()
            )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service category not found.',
        )
    return CategoryServicesResponse(
        category=build_category_response(category, len(services)),
        data=[ServiceResponse.model_validate(service) for service in services],
    )


@router.get('/{service_id}', response_model=ServiceResponse)
def get_service(service_id: str, db: Session = Depends(get_db)):
    return get_service_or_404(service_id, db)


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    try:
        ensure_category_exists(data.category_id, db)
        ensure_unique_name(db, data.name, data.category_id)

        service = Service(**data.model_dump())
        db.add(service)
        db.commit()
        db.refresh(service)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service %s created by %s', service.id, admin.id)
    return service


@router.put('/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: str,
    data: UpdateServiceRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    service = get_service_or_404(service_id, db)
    changes = data.model_dump(exclude_unset=True)

    try:
        category_id = changes.get('category_id') or service.category_id
        if category_id != service.category_id:
            ensure_category_exists(category_id, db)
        if changes.get('name') or changes.get('category_id'):
            ensure_unique_name(db, changes.get('name') or service.name, category_id, exclude_id=service.id)

        apply_changes(service, changes, REQUIRED_SERVICE_FIELDS)
        db.commit()
        db.refresh(service)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service %s updated by %s', service.id, admin.id)
    return service


@router.delete('/{service_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    service_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    service = get_service_or_404(service_id, db)

    try:
        bookings = db.query(Booking).filter(Booking.service_id == service.id)
        if bookings.filter(Booking.status.in_(ACTIVE_STATUSES)).count():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Cannot delete a service with pending or confirmed bookings.',
            )

        # Past bookings keep their history without the catalogue link.
        bookings.update({Booking.service_id: None}, synchronize_session=False)
        db.delete(service)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service %s deleted by %s', service_id, admin.id)
