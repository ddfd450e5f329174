"""Helpers shared by the resource routers."""

import math
from datetime import datetime, timezone

from fastapi import HTTPException, status
from pydantic import BaseModel

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'
LIKE_ESCAPE = '\\'


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace('%', LIKE_ESCAPE + '%')
        .replace('_', LIKE_ESCAPE + '_')
    )


def contains_pattern(value: str) -> str:
    # Use with .like(pattern, escape=LIKE_ESCAPE) on a lowercased column.
    return f'%{escape_like(value.strip().lower())}%'


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


def build_pagination(page: int, limit: int, total_count: int) -> PaginationResponse:
    total_pages = math.ceil(total_count / limit) if total_count else 0
    return PaginationResponse(
        page=page,
        limit=limit,
        total_count=total_count,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def strip_optional(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')
    return normalized


def required_text(value: str, max_length: int, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')
    return normalized


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE,
    )


def apply_changes(instance, changes: dict, required_fields: tuple[str, ...] = ()) -> None:
    for field, value in changes.items():
        # Required columns are never cleared by an explicit null.
        if value is None and field in required_fields:
            continue
        setattr(instance, field, value)
