import pytest

from backend.core import config
from backend.main import app, root


def test_root_reports_status() -> None:
    assert root() == {'status': 'Studio API Running'}


def test_routers_are_mounted_under_api_prefix() -> None:
    paths = set(app.openapi()['paths'])

    assert {
        '/api/auth/register',
        '/api/auth/login',
        '/api/auth/refresh',
        '/api/auth/forgot-password',
        '/api/auth/reset-password',
        '/api/auth/logout',
        '/api/auth/me',
        '/api/bookings',
        '/api/bookings/availability',
        '/api/bookings/bulk',
        '/api/bookings/{booking_id}',
        '/api/bookings/{booking_id}/status',
        '/api/contact',
        '/api/contact/stats',
        '/api/portfolio',
        '/api/portfolio/featured',
        '/api/portfolio/category/{category}',
        '/api/portfolio/{item_id}',
        '/api/services',
        '/api/services/category/{category_slug}',
        '/api/services/{service_id}',
        '/api/service-categories',
        '/api/service-categories/reorder',
        '/api/service-categories/{identifier}',
        '/api/service-categories/{category_id}',
    } <= paths


def test_validate_runtime_config_rejects_placeholder_secrets_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_ACCESS_SECRET', 'your-secret-key')

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()


def test_validate_runtime_config_accepts_real_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_ACCESS_SECRET', 'a' * 40)
    monkeypatch.setattr(config, 'JWT_REFRESH_SECRET', 'b' * 40)
    monkeypatch.setattr(config, 'JWT_RESET_SECRET', 'c' * 40)
    monkeypatch.setattr(config, 'REGISTRATION_DEFAULT_ROLE', 'user')

    config.validate_runtime_config()
