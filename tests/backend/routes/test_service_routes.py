from datetime import datetime, time, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models.booking import Booking
from backend.models.service import Service
from backend.models.service_category import ServiceCategory
from backend.routes.service_routes import (
    CreateServiceRequest,
    UpdateServiceRequest,
    create_service,
    delete_service,
    get_service,
    list_services,
    list_services_by_category,
    update_service,
)


@pytest.fixture
def admin(user_record_factory):
    return user_record_factory(id='admin-1', role='admin')


@pytest.fixture
def categories(db_session):
    photo = ServiceCategory(name='Photography', slug='photography', sort_order=1)
    sound = ServiceCategory(name='Sound', slug='sound', sort_order=2)
    db_session.add_all([photo, sound])
    db_session.commit()
    return photo, sound


def _service(db, admin, category_id: str, name: str, **overrides):
    return create_service(CreateServiceRequest(name=name, category_id=category_id, **overrides), db=db, admin=admin)


def _list(db, **filters):
    params = {
        'category_id': None,
        'category_slug': None,
        'subcategory': None,
        'active': None,
        'search': None,
        'price_min': None,
        'price_max': None,
        'page': 1,
        'limit': 10,
    }
    params.update(filters)
    return list_services(db=db, **params)


def _booking(db, service_id: str, booking_status: str) -> Booking:
    start = datetime.combine(datetime.now(timezone.utc).date() + timedelta(days=1), time(10, 0))
    booking = Booking(
        client_name='Jane Client',
        client_email='jane@example.com',
        service_id=service_id,
        booking_date=start,
        start_time=start,
        end_time=start + timedelta(hours=1),
        status=booking_status,
    )
    db.add(booking)
    db.commit()
    return booking


def test_create_request_validates_pricing() -> None:
    with pytest.raises(ValidationError):
        CreateServiceRequest(name='Portraits', category_id='cat', base_price=-1)
    with pytest.raises(ValidationError):
        CreateServiceRequest(name='Portraits', category_id='cat', price_type='monthly')
    with pytest.raises(ValidationError):
        CreateServiceRequest(name='Portraits', category_id='cat', duration_minutes=0)

    request = CreateServiceRequest(name=' Portraits ', category_id='cat', price_type='Hourly', features=['Retouching'])
    assert request.name == 'Portraits'
    assert request.price_type == 'hourly'


def test_create_service_requires_existing_category(db_session, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _service(db_session, admin, 'missing', 'Portraits')

    assert exception_info.value.status_code == 400


def test_create_service_rejects_duplicate_name_in_category(db_session, admin, categories) -> None:
    photo, sound = categories
    _service(db_session, admin, photo.id, 'Editing')

    with pytest.raises(HTTPException) as exception_info:
        _service(db_session, admin, photo.id, 'Editing')

    assert exception_info.value.status_code == 409
    assert _service(db_session, admin, sound.id, 'Editing').category_id == sound.id


def test_list_services_filters(db_session, admin, categories) -> None:
    photo, sound = categories
    _service(db_session, admin, sound.id, 'Live Sound', base_price=800)
    _service(db_session, admin, photo.id, 'Weddings', base_price=2500, subcategory='Events')
    _service(db_session, admin, photo.id, 'Headshots', base_price=150, description='Studio 100% natural light')
    _service(db_session, admin, photo.id, 'Old Package', active=False)

    everything = _list(db_session)
    by_slug = _list(db_session, category_slug='photography', active=True)
    priced = _list(db_session, price_min=100, price_max=1000)
    searched = _list(db_session, search='100%')
    unknown = _list(db_session, category_slug='nope')

    assert [service.name for service in everything.data] == ['Headshots', 'Old Package', 'Weddings', 'Live Sound']
    assert [service.name for service in by_slug.data] == ['Headshots', 'Weddings']
    assert [service.name for service in priced.data] == ['Headshots', 'Live Sound']
    assert [service.name for service in searched.data] == ['Headshots']
    assert unknown.pagination.total_count == 0


def test_list_services_by_category_returns_active_services(db_session, admin, categories) -> None:
    photo, _ = categories
    _service(db_session, admin, photo.id, 'Weddings', subcategory='Events')
    _service(db_session, admin, photo.id, 'Corporate', subcategory='Events')
    _service(db_session, admin, photo.id, 'Old Package', active=False)

    result = list_services_by_category('photography', db=db_session)

    assert result.category.slug == 'photography'
    assert [service.name for service in result.data] == ['Corporate', 'Weddings']

    with pytest.raises(HTTPException) as exception_info:
        list_services_by_category('nope', db=db_session)
    assert exception_info.value.status_code == 404


def test_update_service_moves_category_and_checks_conflicts(db_session, admin, categories) -> None:
    photo, sound = categories
    service = _service(db_session, admin, photo.id, 'Editing')
    _service(db_session, admin, sound.id, 'Editing')

    with pytest.raises(HTTPException) as conflict:
        update_service(service.id, UpdateServiceRequest(category_id=sound.id), db=db_session, admin=admin)
    with pytest.raises(HTTPException) as missing_category:
        update_service(service.id, UpdateServiceRequest(category_id='missing'), db=db_session, admin=admin)

    assert conflict.value.status_code == 409
    assert missing_category.value.status_code == 400

    updated = update_service(
        service.id,
        UpdateServiceRequest(name='Photo Editing', base_price=75.5, active=None),
        db=db_session,
        admin=admin,
    )
    assert updated.name == 'Photo Editing'
    assert updated.base_price == 75.5
    assert updated.active is True


def test_get_service_returns_404_when_missing(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_service('missing', db=db_session)

    assert exception_info.value.status_code == 404


def test_delete_service_refuses_with_active_bookings(db_session, admin, categories) -> None:
    photo, _ = categories
    service = _service(db_session, admin, photo.id, 'Weddings')
    _booking(db_session, service.id, 'confirmed')

    with pytest.raises(HTTPException) as exception_info:
        delete_service(service.id, db=db_session, admin=admin)

    assert exception_info.value.status_code == 409
    assert db_session.get(Service, service.id) is not None


def test_delete_service_unlinks_finished_bookings(db_session, admin, categories) -> None:
    photo, _ = categories
    service = _service(db_session, admin, photo.id, 'Weddings')
    booking = _booking(db_session, service.id, 'completed')

    delete_service(service.id, db=db_session, admin=admin)

    assert db_session.get(Service, service.id) is None
    assert db_session.get(Booking, booking.id).service_id is None
