import logging
import re
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_admin
from backend.auth.repository import UserRecord
from backend.database import get_db
from backend.models.service import Service
from backend.models.service_category import ServiceCategory
from backend.routes.common import apply_changes, database_unavailable, required_text, strip_optional

router = APIRouter(tags=['service-categories'])

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')
CATEGORY_CONFLICT = 'A service category with this name or slug already exists.'
REQUIRED_CATEGORY_FIELDS = ('name', 'slug', 'active', 'sort_order')


def _validate_slug(value: str) -> str:
    normalized = required_text(value, 50, 'Category slug')
    if not SLUG_PATTERN.match(normalized):
        raise ValueError('Slug must contain only lowercase letters, numbers, and hyphens')
    return normalized


def _validate_sort_order(value: int) -> int:
    if value < 0:
        raise ValueError('Sort order must be non-negative')
    return value


class CreateServiceCategoryRequest(BaseModel):
    name: str
    slug: str
    description: str | None = None
    icon: str | None = None
    active: bool = True
    sort_order: int = 0

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return required_text(value, 100, 'Category name')

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, value: str) -> str:
        return _validate_slug(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return strip_optional(value, 500, 'Description')

    @field_validator('icon')
    @classmethod
    def validate_icon(cls, value: str | None) -> str | None:
        return strip_optional(value, 100, 'Icon name')

    @field_validator('sort_order')
    @classmethod
    def validate_sort_order(cls, value: int) -> int:
        return _validate_sort_order(value)


class UpdateServiceCategoryRequest(BaseModel):
    name: str | None = None
    slug: str | None = None
    description: str | None = None
    icon: str | None = None
    active: bool | None = None
    sort_order: int | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return required_text(value, 100, 'Category name')

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_slug(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return strip_optional(value, 500, 'Description')

    @field_validator('icon')
    @classmethod
    def validate_icon(cls, value: str | None) -> str | None:
        return strip_optional(value, 100, 'Icon name')

    @field_validator('sort_order')
    @classmethod
    def validate_sort_order(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return _validate_sort_order(value)


class CategoryOrder(BaseModel):
    id: str
    sort_order: int

    @field_validator('sort_order')
    @classmethod
    def validate_sort_order(cls, value: int) -> int:
        return _validate_sort_order(value)


class ReorderServiceCategoriesRequest(BaseModel):
    category_orders: list[CategoryOrder]


class ServiceCategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: str | None = None
    icon: str | None = None
    active: bool
    sort_order: int
    service_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ServiceCategoryListResponse(BaseModel):
    data: list[ServiceCategoryResponse]


def count_active_services(db: Session, category_ids: list[str]) -> dict[str, int]:
    if not category_ids:
        return {}
    return dict(
        db.query(Service.category_id, func.count(Service.id))
        .filter(Service.category_id.in_(category_ids), Service.active.is_(True))
        .group_by(Service.category_id)
        .all()
    )


def build_category_response(category: ServiceCategory, service_count: int = 0) -> ServiceCategoryResponse:
    response = ServiceCategoryResponse.model_validate(category)
    response.service_count = service_count
    return response


def get_category_or_404(category_id: str, db: Session) -> ServiceCategory:
    category = db.get(ServiceCategory, category_id)
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service category not found.',
        )
    return category


def find_conflicting_category(
    db: Session,
    name: str,
    slug: str,
    exclude_id: str | None = None,
) -> ServiceCategory | None:
    query = db.query(ServiceCategory).filter(
        or_(ServiceCategory.name == name, ServiceCategory.slug == slug)
    )
    if exclude_id is not None:
        query = query.filter(ServiceCategory.id != exclude_id)
    return query.first()


@router.get('', response_model=ServiceCategoryListResponse)
def list_service_categories(
    active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(ServiceCategory)
        if active is not None:
            query = query.filter(ServiceCategory.active.is_(active))
        categories = query.order_by(ServiceCategory.sort_order.asc(), ServiceCategory.name.asc()).all()
        counts = count_active_services(db, [category.id for category in categories])
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return ServiceCategoryListResponse(
        data=[build_category_response(category, counts.get(category.id, 0)) for category in categories],
    )


@router.get('/{identifier}', response_model=ServiceCategoryResponse)
def get_service_category(identifier: str, db: Session = Depends(get_db)):
    try:
        category = (
            db.query(ServiceCategory)
            .filter(or_(ServiceCategory.id == identifier, ServiceCategory.slug == identifier))
            .first()
        )
        counts = count_active_services(db, [category.id]) if category else {}
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service category not found.',
        )
    return build_category_response(category, counts.get(category.id, 0))


@router.post('', response_model=ServiceCategoryResponse, status_code=status.HTTP_201_CREATED)
def create_service_category(
    data: CreateServiceCategoryRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    try:
        if find_conflicting_category(db, data.name, data.slug):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CATEGORY_CONFLICT)

        category = ServiceCategory(**data.model_dump())
        db.add(category)
        db.commit()
        db.refresh(category)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CATEGORY_CONFLICT) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service category %s created by %s', category.slug, admin.id)
    return build_category_response(category)


@router.post('/reorder', response_model=ServiceCategoryListResponse)
def reorder_service_categories(
    data: ReorderServiceCategoriesRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    requested = {item.id: item.sort_order for item in data.category_orders}

    try:
        categories = db.query(ServiceCategory).filter(ServiceCategory.id.in_(list(requested))).all()
        missing_ids = sorted(set(requested) - {category.id for category in categories})
        if missing_ids:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f'Service categories not found: {", ".join(missing_ids)}.',
            )

        for category in categories:
            category.sort_order = requested[category.id]
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service categories reordered by %s', admin.id)
    return list_service_categories(active=None, db=db)


@router.put('/{category_id}', response_model=ServiceCategoryResponse)
def update_service_category(
    category_id: str,
    data: UpdateServiceCategoryRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    category = get_category_or_404(category_id, db)
    changes = data.model_dump(exclude_unset=True)

    try:
        if (changes.get('name') or changes.get('slug')) and find_conflicting_category(
            db,
            changes.get('name') or category.name,
            changes.get('slug') or category.slug,
            exclude_id=category.id,
        ):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CATEGORY_CONFLICT)

        apply_changes(category, changes, REQUIRED_CATEGORY_FIELDS)
        db.commit()
        db.refresh(category)
        counts = count_active_services(db, [category.id])
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CATEGORY_CONFLICT) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service category %s updated by %s', category.id, admin.id)
    return build_category_response(category, counts.get(category.id, 0))


@router.delete('/{category_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_service_category(
    category_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    category = get_category_or_404(category_id, db)

    try:
        if db.query(Service).filter(Service.category_id == category.id).count():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Cannot delete a category that contains services. Move or delete its services first.',
            )

        db.delete(category)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Service category %s deleted by %s', category_id, admin.id)
