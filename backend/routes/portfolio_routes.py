import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query as OrmQuery, Session

from backend.auth.dependencies import require_admin
from backend.auth.repository import UserRecord
from backend.database import get_db
from backend.models.portfolio_item import PortfolioItem
from backend.routes.common import (
    LIKE_ESCAPE,
    PaginationResponse,
    apply_changes,
    as_naive_utc,
    build_pagination,
    contains_pattern,
    database_unavailable,
    escape_like,
    required_text,
    strip_optional,
)

router = APIRouter(tags=['portfolio'])

logger = logging.getLogger(__name__)

PORTFOLIO_CATEGORIES = ('photography', 'videography', 'sound')
MAX_TAGS = 20
MAX_TAG_LENGTH = 50
DEFAULT_FEATURED_LIMIT = 6
MAX_PAGE_SIZE = 100
PORTFOLIO_CONFLICT = 'A portfolio item with this title already exists in the specified category.'
REQUIRED_PORTFOLIO_FIELDS = ('title', 'category', 'featured')


def _validate_category(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in PORTFOLIO_CATEGORIES:
        raise ValueError(f'Category must be one of: {", ".join(PORTFOLIO_CATEGORIES)}')
    return normalized


def _normalize_tags(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None

    tags = list(dict.fromkeys(tag.strip() for tag in value if tag.strip()))
    if len(tags) > MAX_TAGS:
        raise ValueError(f'A portfolio item can have at most {MAX_TAGS} tags')
    if any(len(tag) > MAX_TAG_LENGTH for tag in tags):
        raise ValueError(f'Tags must be {MAX_TAG_LENGTH} characters or fewer')
    return tags


class PortfolioFields(BaseModel):
    description: str | None = None
    client_name: str | None = None
    project_date: datetime | None = None
    tags: list[str] | None = None

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return strip_optional(value, 2000, 'Description')

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str | None) -> str | None:
        return strip_optional(value, 255, 'Client name')

    @field_validator('project_date')
    @classmethod
    def normalize_project_date(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return as_naive_utc(value)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_tags(value)


class CreatePortfolioItemRequest(PortfolioFields):
    title: str
    category: str
    featured: bool = False

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return required_text(value, 255, 'Title')

    @field_validator('category')
    @classmethod
    def validate_category(cls, value: str) -> str:
        return _validate_category(value)


class UpdatePortfolioItemRequest(PortfolioFields):
    title: str | None = None
    category: str | None = None
    featured: bool | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return required_text(value, 255, 'Title')

    @field_validator('category')
    @classmethod
    def validate_category(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_category(value)


class PortfolioItemResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    category: str
    client_name: str | None = None
    project_date: datetime | None = None
    featured: bool
    tags: list[str] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class PortfolioItemListResponse(BaseModel):
    data: list[PortfolioItemResponse]
    pagination: PaginationResponse


class FeaturedPortfolioResponse(BaseModel):
    data: list[PortfolioItemResponse]


def parse_tags(value: str | None) -> list[str]:
    if not value:
        return []
    return [tag.strip() for tag in value.split(',') if tag.strip()]


def has_tag(tag: str):
    # Tags are stored as a JSON array, so match the quoted element text.
    pattern = f'%{escape_like(json.dumps(tag))}%'
    return cast(PortfolioItem.tags, String).like(pattern, escape=LIKE_ESCAPE)


def showcase_order(query: OrmQuery) -> OrmQuery:
    return query.order_by(
        PortfolioItem.featured.desc(),
        PortfolioItem.project_date.desc().nulls_last(),
        PortfolioItem.created_at.desc(),
    )


def paginate_items(query: OrmQuery, page: int, limit: int) -> PortfolioItemListResponse:
    total_count = query.count()
    items = showcase_order(query).offset((page - 1) * limit).limit(limit).all()
    return PortfolioItemListResponse(
        data=[PortfolioItemResponse.model_validate(item) for item in items],
        pagination=build_pagination(page, limit, total_count),
    )


def get_item_or_404(item_id: str, db: Session) -> PortfolioItem:
    item = db.get(PortfolioItem, item_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Portfolio item not found.',
        )
    return item


def ensure_unique_title(db: Session, title: str, category: str, exclude_id: str | None = None) -> None:
    query = db.query(PortfolioItem).filter(PortfolioItem.title == title, PortfolioItem.category == category)
    if exclude_id is not None:
        query = query.filter(PortfolioItem.id != exclude_id)
    if query.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=PORTFOLIO_CONFLICT)


@router.get('', response_model=PortfolioItemListResponse)
def list_portfolio_items(
    category: str | None = Query(default=None),
    featured: bool | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    tags: str | None = Query(default=None),
    client_name: str | None = Query(default=None, max_length=255),
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    if category is not None:
        try:
            category = _validate_category(category)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        query = db.query(PortfolioItem)
        if category:
            query = query.filter(PortfolioItem.category == category)
        if featured is not None:
            query = query.filter(PortfolioItem.featured.is_(featured))
        if date_from:
            query = query.filter(PortfolioItem.project_date >= as_naive_utc(date_from))
        if date_to:
            query = query.filter(PortfolioItem.project_date <= as_naive_utc(date_to))
        for tag in parse_tags(tags):
            query = query.filter(has_tag(tag))
        if client_name and client_name.strip():
            query = query.filter(
                func.lower(PortfolioItem.client_name).like(contains_pattern(client_name), escape=LIKE_ESCAPE)
            )
        if search and search.strip():
            pattern = contains_pattern(search)
            query = query.filter(
                or_(
                    func.lower(PortfolioItem.title).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(PortfolioItem.description).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(PortfolioItem.client_name).like(pattern, escape=LIKE_ESCAPE),
                )
            )

        return paginate_items(query, page, limit)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/featured', response_model=FeaturedPortfolioResponse)
def list_featured_portfolio_items(
    limit: int = Query(default=DEFAULT_FEATURED_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
):
    try:
        items = (
            db.query(PortfolioItem)
            .filter(PortfolioItem.featured.is_(True))
            .order_by(PortfolioItem.project_date.desc().nulls_last(), PortfolioItem.created_at.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return FeaturedPortfolioResponse(data=[PortfolioItemResponse.model_validate(item) for item in items])


@router.get('/category/{category}', response_model=PortfolioItemListResponse)
def list_portfolio_items_by_category(
    category: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        category = _validate_category(category)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        return paginate_items(db.query(PortfolioItem).filter(PortfolioItem.category == category), page, limit)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{item_id}', response_model=PortfolioItemResponse)
def get_portfolio_item(item_id: str, db: Session = Depends(get_db)):
    return get_item_or_404(item_id, db)


@router.post('', response_model=PortfolioItemResponse, status_code=status.HTTP_201_CREATED)
def create_portfolio_item(
    data: CreatePortfolioItemRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    try:
        ensure_unique_title(db, data.title, data.category)

        item = PortfolioItem(**data.model_dump())
        db.add(item)
        db.commit()
        db.refresh(item)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Portfolio item %s created by %s', item.id, admin.id)
    return item


@router.put('/{item_id}', response_model=PortfolioItemResponse)
def update_portfolio_item(
    item_id: str,
    data: UpdatePortfolioItemRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    item = get_item_or_404(item_id, db)
    changes = data.model_dump(exclude_unset=True)

    try:
        if changes.get('title') or changes.get('category'):
            ensure_unique_title(
                db,
                changes.get('title') or item.title,
                changes.get('category') or item.category,
                exclude_id=item.id,
            )

        apply_changes(item, changes, REQUIRED_PORTFOLIO_FIELDS)
        db.commit()
        db.refresh(item)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Portfolio item %s updated by %s', item.id, admin.id)
    return item


@router.delete('/{item_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_portfolio_item(
    item_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    item = get_item_or_404(item_id, db)

    try:
        db.delete(item)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Portfolio item %s deleted by %s', item_id, admin.id)
