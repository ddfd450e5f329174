from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from backend.auth.dependencies import (
    get_current_user,
    get_optional_user,
    get_token_service,
    require_admin,
    require_role,
)
from backend.auth.jwt_handler import TokenKind


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_get_current_user_resolves_access_token(auth_service) -> None:
    registered = auth_service.register('a@example.com', 'Passw0rd!')

    user = get_current_user(credentials=_bearer(registered.access_token), service=auth_service)

    assert user.id == registered.user.id


def test_get_current_user_requires_token(auth_service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=None, service=auth_service)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Access token required'


def test_get_current_user_rejects_refresh_token(auth_service) -> None:
    registered = auth_service.register('a@example.com', 'Passw0rd!')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_bearer(registered.refresh_token), service=auth_service)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_expired_token(auth_service, clock) -> None:
    clock.advance(-timedelta(minutes=30))
    registered = auth_service.register('a@example.com', 'Passw0rd!')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_bearer(registered.access_token), service=auth_service)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_token_for_unknown_user(auth_service, user_record_factory) -> None:
    token = auth_service.tokens.issue(TokenKind.ACCESS, user_record_factory(id='ghost'))

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_bearer(token), service=auth_service)

    assert exception_info.value.status_code == 401


def test_get_optional_user_never_fails(auth_service) -> None:
    registered = auth_service.register('a@example.com', 'Passw0rd!')

    assert get_optional_user(credentials=None, service=auth_service) is None
    assert get_optional_user(credentials=_bearer('garbage'), service=auth_service) is None
    assert get_optional_user(credentials=_bearer(registered.access_token), service=auth_service).id == registered.user.id


def test_require_role_allows_listed_roles(user_record_factory) -> None:
    admin = user_record_factory(role='admin')

    assert require_admin(current_user=admin) is admin
    assert require_role('user', 'admin')(current_user=admin) is admin


def test_require_role_rejects_other_roles(user_record_factory) -> None:
    with pytest.raises(HTTPException) as exception_info:
        require_admin(current_user=user_record_factory(role='user'))

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Insufficient permissions'


def test_token_service_uses_configured_lifetimes() -> None:
    service = get_token_service()

    assert service.expires_in(TokenKind.ACCESS) == 15 * 60
    assert service.expires_in(TokenKind.REFRESH) == 7 * 24 * 60 * 60
    assert service.expires_in(TokenKind.RESET) == 60 * 60
