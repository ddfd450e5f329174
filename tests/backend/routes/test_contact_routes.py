from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models.contact_inquiry import ContactInquiry
from backend.routes.contact_routes import (
    CreateContactInquiryRequest,
    UpdateContactInquiryRequest,
    create_contact_inquiry,
    delete_contact_inquiry,
    get_contact_inquiry,
    get_contact_inquiry_stats,
    list_contact_inquiries,
    update_contact_inquiry,
)


def _inquiry_request(**overrides) -> CreateContactInquiryRequest:
    values = {
        'name': ' Sam Patron ',
        'email': ' Sam@Example.com ',
        'message': 'We would love a quote for a wedding shoot.',
    }
    values.update(overrides)
    return CreateContactInquiryRequest(**values)


def _list(db, admin, **filters):
    params = {
        'inquiry_status': None,
        'search': None,
        'date_from': None,
        'date_to': None,
        'page': 1,
        'limit': 20,
    }
    params.update(filters)
    return list_contact_inquiries(db=db, admin=admin, **params)


@pytest.fixture
def admin(user_record_factory):
    return user_record_factory(id='admin-1', role='admin')


def test_create_request_normalizes_and_blanks_optional_fields() -> None:
    request = _inquiry_request(phone='', subject='  ', service_interest='')

    assert request.name == 'Sam Patron'
    assert request.email == 'sam@example.com'
    assert request.phone is None
    assert request.subject is None
    assert request.service_interest is None


@pytest.mark.parametrize(
    'overrides',
    [
        {'name': 'S'},
        {'email': 'sam-at-example'},
        {'message': 'too short'},
        {'message': 'x' * 2001},
        {'phone': '0123456789'},
        {'phone': '12345'},
        {'subject': 'Hi'},
        {'service_interest': 'x' * 101},
    ],
)
def test_create_request_rejects_invalid_input(overrides) -> None:
    with pytest.raises(ValidationError):
        _inquiry_request(**overrides)


def test_create_request_accepts_international_phone() -> None:
    assert _inquiry_request(phone='+14155550123').phone == '+14155550123'


def test_update_request_rejects_unknown_status() -> None:
    with pytest.raises(ValidationError):
        UpdateContactInquiryRequest(status='spam')


def test_create_contact_inquiry_stores_new_inquiry(db_session) -> None:
    inquiry = create_contact_inquiry(_inquiry_request(subject='Wedding'), db=db_session)

    assert inquiry.status == 'new'
    assert db_session.get(ContactInquiry, inquiry.id).subject == 'Wedding'


def test_list_contact_inquiries_searches_case_insensitively(db_session, admin) -> None:
    create_contact_inquiry(_inquiry_request(subject='Wedding photos'), db=db_session)
    create_contact_inquiry(_inquiry_request(name='Alex Buyer', email='alex@example.com', message='Corporate headshots for our team.'), db=db_session)

    result = _list(db_session, admin, search='WEDDING')

    assert [inquiry.subject for inquiry in result.data] == ['Wedding photos']
    assert result.pagination.total_count == 1


def test_list_contact_inquiries_treats_wildcards_in_search_literally(db_session, admin) -> None:
    create_contact_inquiry(_inquiry_request(subject='Discount 50% off'), db=db_session)
    create_contact_inquiry(_inquiry_request(subject='Discount 50 percent'), db=db_session)
    create_contact_inquiry(_inquiry_request(subject='snake_case question'), db=db_session)

    percent = _list(db_session, admin, search='50%')
    underscore = _list(db_session, admin, search='e_c')
    everything = _list(db_session, admin, search='%')

    assert [inquiry.subject for inquiry in percent.data] == ['Discount 50% off']
    assert [inquiry.subject for inquiry in underscore.data] == ['snake_case question']
    assert everything.pagination.total_count == 1


def test_list_contact_inquiries_filters_status_and_dates(db_session, admin) -> None:
    old = ContactInquiry(
        name='Old Lead',
        email='old@example.com',
        message='Message from long ago.',
        status='closed',
        created_at=datetime(2020, 1, 1, 12, 0),
        updated_at=datetime(2020, 1, 1, 12, 0),
    )
    db_session.add(old)
    db_session.commit()
    create_contact_inquiry(_inquiry_request(), db=db_session)

    closed = _list(db_session, admin, inquiry_status='closed')
    recent = _list(db_session, admin, date_from=datetime(2021, 1, 1))

    assert [inquiry.email for inquiry in closed.data] == ['old@example.com']
    assert [inquiry.email for inquiry in recent.data] == ['sam@example.com']


def test_list_contact_inquiries_rejects_unknown_status(db_session, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _list(db_session, admin, inquiry_status='spam')

    assert exception_info.value.status_code == 400


def test_list_contact_inquiries_orders_newest_first(db_session, admin) -> None:
    base = datetime(2024, 5, 1, 9, 0)
    for offset, email in enumerate(['first@example.com', 'second@example.com', 'third@example.com']):
        db_session.add(
            ContactInquiry(
                name='Lead',
                email=email,
                message='Please get in touch.',
                status='new',
                created_at=base + timedelta(days=offset),
                updated_at=base + timedelta(days=offset),
            )
        )
    db_session.commit()

    result = _list(db_session, admin, limit=2)

    assert [inquiry.email for inquiry in result.data] == ['third@example.com', 'second@example.com']
    assert result.pagination.total_pages == 2


def test_stats_count_by_status_and_recency(db_session, admin) -> None:
    db_session.add(
        ContactInquiry(
            name='Old Lead',
            email='old@example.com',
            message='Message from long ago.',
            status='responded',
            created_at=datetime(2020, 1, 1, 12, 0),
            updated_at=datetime(2020, 1, 1, 12, 0),
        )
    )
    db_session.commit()
    create_contact_inquiry(_inquiry_request(), db=db_session)
    create_contact_inquiry(_inquiry_request(), db=db_session)

    stats = get_contact_inquiry_stats(db=db_session, admin=admin)

    assert stats.total == 3
    assert stats.by_status == {'new': 2, 'responded': 1, 'closed': 0}
    assert stats.recent == 2


def test_update_and_delete_contact_inquiry(db_session, admin) -> None:
    inquiry = create_contact_inquiry(_inquiry_request(), db=db_session)

    updated = update_contact_inquiry(inquiry.id, UpdateContactInquiryRequest(status='Responded'), db=db_session, admin=admin)
    assert updated.status == 'responded'

    delete_contact_inquiry(inquiry.id, db=db_session, admin=admin)
    assert db_session.get(ContactInquiry, inquiry.id) is None


def test_missing_inquiry_returns_404(db_session, admin) -> None:
    for call in (
        lambda: get_contact_inquiry('missing', db=db_session, admin=admin),
        lambda: delete_contact_inquiry('missing', db=db_session, admin=admin),
    ):
        with pytest.raises(HTTPException) as exception_info:
            call()
        assert exception_info.value.status_code == 404
        assert exception_info.value.detail == 'Contact inquiry not found.'
