import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_admin
from backend.auth.repository import UserRecord
from backend.database import get_db
from backend.models.booking import Booking
from backend.models.service import Service
from backend.routes.auth_routes import normalize_email_field
from backend.routes.common import (
    DATABASE_UNAVAILABLE,
    PaginationResponse,
    apply_changes,
    as_naive_utc,
    build_pagination,
    strip_optional,
    utcnow,
)

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ('pending', 'confirmed', 'cancelled', 'completed')
ACTIVE_STATUSES = ('pending', 'confirmed')
STATUS_TRANSITIONS = {
    'pending': {'confirmed', 'cancelled'},
    'confirmed': {'completed', 'cancelled'},
    'cancelled': set(),
    'completed': set(),
}
BULK_OPERATIONS = {
    'confirm': 'confirmed',
    'cancel': 'cancelled',
    'complete': 'completed',
}
BUSINESS_OPEN_HOUR = 9
BUSINESS_CLOSE_HOUR = 18
SLOT_INCREMENT_MINUTES = 30
DEFAULT_SLOT_DURATION_MINUTES = 60
MAX_PAGE_SIZE = 100
REQUIRED_BOOKING_FIELDS = ('client_name', 'client_email', 'booking_date', 'start_time', 'end_time')


def calendar_day(value: datetime) -> datetime:
    # The booking date names a calendar day in the client's own offset.
    return datetime.combine(value.date(), time.min)


def _validate_client_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Client name is required.')
    if len(normalized) > 255:
        raise ValueError('Client name too long.')
    return normalized


class BookingDetails(BaseModel):
    client_phone: str | None = None
    service_id: str | None = None
    project_details: str | None = None
    budget_range: str | None = None
    location: str | None = None
    notes: str | None = None

    @field_validator('client_phone')
    @classmethod
    def validate_client_phone(cls, value: str | None) -> str | None:
        return strip_optional(value, 50, 'Phone number')

    @field_validator('project_details')
    @classmethod
    def validate_project_details(cls, value: str | None) -> str | None:
        return strip_optional(value, 2000, 'Project details')

    @field_validator('budget_range')
    @classmethod
    def validate_budget_range(cls, value: str | None) -> str | None:
        return strip_optional(value, 50, 'Budget range')

    @field_validator('location')
    @classmethod
    def validate_location(cls, value: str | None) -> str | None:
        return strip_optional(value, 255, 'Location')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return strip_optional(value, 1000, 'Notes')

    @field_validator('service_id')
    @classmethod
    def validate_service_id(cls, value: str | None) -> str | None:
        return strip_optional(value, 100, 'Service ID')


class CreateBookingRequest(BookingDetails):
    client_name: str
    client_email: str
    booking_date: datetime
    start_time: datetime
    end_time: datetime

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str) -> str:
        return _validate_client_name(value)

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str) -> str:
        return normalize_email_field(value)

    @field_validator('booking_date', 'start_time', 'end_time')
    @classmethod
    def truncate_microseconds(cls, value: datetime) -> datetime:
        return value.replace(microsecond=0)

    @model_validator(mode='after')
    def validate_time_range(self) -> 'CreateBookingRequest':
        # Same-day check runs in the offsets the client sent, before
        # times are shifted to UTC for storage.
        booking_day = self.booking_date.date()
        if self.start_time.date() != booking_day or self.end_time.date() != booking_day:
            raise ValueError('Start and end times must be on the same day as booking date.')

        self.booking_date = calendar_day(self.booking_date)
        self.start_time = as_naive_utc(self.start_time)
        self.end_time = as_naive_utc(self.end_time)
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class UpdateBookingRequest(BookingDetails):
    client_name: str | None = None
    client_email: str | None = None
    booking_date: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_client_name(value)

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_email_field(value)

    @field_validator('booking_date')
    @classmethod
    def normalize_booking_date(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return calendar_day(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_datetime(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return as_naive_utc(value).replace(microsecond=0)


class UpdateBookingStatusRequest(BaseModel):
    status: str
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in BOOKING_STATUSES:
            raise ValueError(f'Status must be one of: {", ".join(BOOKING_STATUSES)}')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return strip_optional(value, 1000, 'Notes')


class BulkBookingRequest(BaseModel):
    booking_ids: list[str]
    operation: str
    notes: str | None = None

    @field_validator('booking_ids')
    @classmethod
    def validate_booking_ids(cls, value: list[str]) -> list[str]:
        booking_ids = list(dict.fromkeys(item.strip() for item in value if item.strip()))
        if not booking_ids:
            raise ValueError('At least one booking ID is required')
        return booking_ids

    @field_validator('operation')
    @classmethod
    def validate_operation(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in BULK_OPERATIONS:
            raise ValueError(f'Operation must be one of: {", ".join(BULK_OPERATIONS)}')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return strip_optional(value, 1000, 'Notes')


class BookingResponse(BaseModel):
    id: str
    client_name: str
    client_email: str
    client_phone: str | None = None
    service_id: str | None = None
    booking_date: datetime
    start_time: datetime
    end_time: datetime
    status: str
    project_details: str | None = None
    budget_range: str | None = None
    location: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    data: list[BookingResponse]
    pagination: PaginationResponse


class BulkBookingResponse(BaseModel):
    operation: str
    updated_count: int
    bookings: list[BookingResponse]


class AvailabilitySlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    available: bool


class AvailabilityResponse(BaseModel):
    date: date
    duration_minutes: int
    slots: list[AvailabilitySlotResponse]
    total_slots: int
    available_slots: int


def find_overlapping_bookings(
    start_time: datetime,
    end_time: datetime,
    db: Session,
    exclude_id: str | None = None,
) -> list[Booking]:
    query = db.query(Booking).filter(
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    return query.order_by(Booking.start_time.asc()).all()


def build_day_slots(
    day: date,
    duration_minutes: int,
    booked_ranges: list[tuple[datetime, datetime]],
) -> list[AvailabilitySlotResponse]:
    slots: list[AvailabilitySlotResponse] = []
    current_start = datetime.combine(day, time(BUSINESS_OPEN_HOUR, 0))
    day_close = datetime.combine(day, time(BUSINESS_CLOSE_HOUR, 0))

    while current_start < day_close:
        slot_end = current_start + timedelta(minutes=duration_minutes)
        if slot_end <= day_close:
            has_conflict = any(
                current_start < booked_end and slot_end > booked_start
                for booked_start, booked_end in booked_ranges
            )
            slots.append(
                AvailabilitySlotResponse(
                    start_time=current_start,
                    end_time=slot_end,
                    duration_minutes=duration_minutes,
                    available=not has_conflict,
                )
            )
        current_start += timedelta(minutes=SLOT_INCREMENT_MINUTES)

    return slots


def get_booking_or_404(booking_id: str, db: Session) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Booking not found.',
        )
    return booking


def ensure_service_bookable(service_id: str, db: Session) -> None:
    service = db.get(Service, service_id)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Service with the specified ID does not exist.',
        )
    if not service.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The selected service is currently unavailable.',
        )


def raise_slot_conflict() -> None:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail='The selected time slot conflicts with an existing booking.',
    )


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(data: CreateBookingRequest, db: Session = Depends(get_db)):
    if data.start_time <= utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Cannot create bookings for past dates.',
        )

    try:
        if data.service_id:
            ensure_service_bookable(data.service_id, db)
        if find_overlapping_bookings(data.start_time, data.end_time, db):
            raise_slot_conflict()

        booking = Booking(**data.model_dump(), status='pending')
        db.add(booking)
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Booking %s created for %s', booking.id, booking.start_time.isoformat())
    return booking


@router.get('/availability', response_model=AvailabilityResponse)
def get_availability(
    day: date = Query(..., alias='date'),
    duration: int = Query(default=DEFAULT_SLOT_DURATION_MINUTES, ge=SLOT_INCREMENT_MINUTES, le=480),
    db: Session = Depends(get_db),
):
    if day < utcnow().date():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Cannot check availability for past dates.',
        )

    try:
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        booked = find_overlapping_bookings(day_start, day_end, db)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    slots = build_day_slots(day, duration, [(b.start_time, b.end_time) for b in booked])
    return AvailabilityResponse(
        date=day,
        duration_minutes=duration,
        slots=slots,
        total_slots=len(slots),
        available_slots=sum(1 for slot in slots if slot.available),
    )


@router.get('', response_model=BookingListResponse)
def list_bookings(
    booking_status: str | None = Query(default=None, alias='status'),
    client_email: str | None = Query(default=None),
    service_id: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    del admin
    try:
        query = db.query(Booking)
        if booking_status:
            query = query.filter(Booking.status == booking_status.strip().lower())
        if client_email:
            query = query.filter(Booking.client_email == client_email.strip().lower())
        if service_id:
            query = query.filter(Booking.service_id == service_id)
        if date_from:
            query = query.filter(Booking.start_time >= as_naive_utc(date_from))
        if date_to:
            query = query.filter(Booking.start_time <= as_naive_utc(date_to))

        total_count = query.count()
        bookings = (
            query.order_by(Booking.start_time.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return BookingListResponse(
        data=[BookingResponse.model_validate(booking) for booking in bookings],
        pagination=build_pagination(page, limit, total_count),
    )


@router.post('/bulk', response_model=BulkBookingResponse)
def bulk_update_bookings(
    data: BulkBookingRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    target_status = BULK_OPERATIONS[data.operation]

    try:
        bookings = db.query(Booking).filter(Booking.id.in_(data.booking_ids)).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    found_ids = {booking.id for booking in bookings}
    missing_ids = [booking_id for booking_id in data.booking_ids if booking_id not in found_ids]
    if missing_ids:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'Bookings not found: {", ".join(missing_ids)}.',
        )

    blocked = [
        booking for booking in bookings
        if target_status not in STATUS_TRANSITIONS.get(booking.status, set())
    ]
    if blocked:
        summary = ', '.join(f'{booking.id} ({booking.status})' for booking in blocked)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Cannot change booking status to {target_status} for: {summary}.',
        )

    try:
        for booking in bookings:
            booking.status = target_status
            if data.notes:
                booking.notes = data.notes
        db.commit()
        for booking in bookings:
            db.refresh(booking)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Bulk %s applied to %d bookings by %s', data.operation, len(bookings), admin.id)
    order = {booking_id: index for index, booking_id in enumerate(data.booking_ids)}
    bookings.sort(key=lambda booking: order[booking.id])
    return BulkBookingResponse(
        operation=data.operation,
        updated_count=len(bookings),
        bookings=[BookingResponse.model_validate(booking) for booking in bookings],
    )


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    del admin
    return get_booking_or_404(booking_id, db)


@router.put('/{booking_id}', response_model=BookingResponse)
def update_booking(
    booking_id: str,
    data: UpdateBookingRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    booking = get_booking_or_404(booking_id, db)
    changes = data.model_dump(exclude_unset=True)

    start_time = changes.get('start_time') or booking.start_time
    end_time = changes.get('end_time') or booking.end_time
    if end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='End time must be after start time.',
        )

    try:
        service_id = changes.get('service_id')
        if service_id and service_id != booking.service_id:
            ensure_service_bookable(service_id, db)
        if ('start_time' in changes or 'end_time' in changes) and find_overlapping_bookings(
            start_time, end_time, db, exclude_id=booking.id
        ):
            raise_slot_conflict()

        apply_changes(booking, changes, REQUIRED_BOOKING_FIELDS)
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Booking %s updated by %s', booking.id, admin.id)
    return booking


@router.patch('/{booking_id}/status', response_model=BookingResponse)
def update_booking_status(
    booking_id: str,
    data: UpdateBookingStatusRequest,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    booking = get_booking_or_404(booking_id, db)

    if data.status not in STATUS_TRANSITIONS.get(booking.status, set()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Cannot change booking status from {booking.status} to {data.status}.',
        )

    try:
        previous_status = booking.status
        booking.status = data.status
        if data.notes:
            booking.notes = data.notes
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Booking %s moved from %s to %s by %s', booking.id, previous_status, booking.status, admin.id)
    return booking


@router.delete('/{booking_id}', response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    admin: UserRecord = Depends(require_admin),
):
    booking = get_booking_or_404(booking_id, db)

    if booking.status == 'completed':
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Cannot cancel a completed booking.',
        )
    if booking.status == 'cancelled':
        return booking

    try:
        booking.status = 'cancelled'
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Booking %s cancelled by %s', booking.id, admin.id)
    return booking
