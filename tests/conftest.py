"""Shared pytest fixtures for the studio backend tests."""

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from backend.auth.jwt_handler import TokenService  # noqa: E402
from backend.auth.passwords import PasswordHasher  # noqa: E402
from backend.auth.repository import UserRecord, UserRepository  # noqa: E402
from backend.auth.service import AuthService  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.booking import Booking  # noqa: E402
from backend.models.contact_inquiry import ContactInquiry  # noqa: E402
from backend.models.portfolio_item import PortfolioItem  # noqa: E402
from backend.models.service import Service  # noqa: E402
from backend.models.service_category import ServiceCategory  # noqa: E402
from backend.models.user import User  # noqa: E402

ACCESS_SECRET = 'test-access-secret-with-enough-length-0001'
REFRESH_SECRET = 'test-refresh-secret-with-enough-length-002'
RESET_SECRET = 'test-reset-secret-with-enough-length-00003'
ISSUER = 'derji-productions'
AUDIENCE = 'derji-productions-client'

TABLES = [
    User.__table__,
    ServiceCategory.__table__,
    Service.__table__,
    Booking.__table__,
    ContactInquiry.__table__,
    PortfolioItem.__table__,
]


class FrozenClock:
    """Callable clock that tests can move around."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def build_token_service(clock=None, **overrides) -> TokenService:
    kwargs = {
        'access_secret': ACCESS_SECRET,
        'refresh_secret': REFRESH_SECRET,
        'reset_secret': RESET_SECRET,
        'issuer': ISSUER,
        'audience': AUDIENCE,
    }
    kwargs.update(overrides)
    if clock is not None:
        kwargs['clock'] = clock
    return TokenService(**kwargs)


def make_user_record(**overrides) -> UserRecord:
    values = {
        'id': 'user-1',
        'email': 'a@example.com',
        'password_hash': 'not-a-hash',
        'role': 'admin',
        'first_name': None,
        'last_name': None,
        'created_at': None,
        'updated_at': None,
    }
    values.update(overrides)
    return UserRecord(**values)


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def token_service(clock: FrozenClock) -> TokenService:
    return build_token_service(clock=clock)


@pytest.fixture
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast.
    return PasswordHasher(rounds=4)


@pytest.fixture
def auth_service(db_session, hasher: PasswordHasher, token_service: TokenService) -> AuthService:
    return AuthService(UserRepository(db_session), hasher, token_service, default_role='admin')


@pytest.fixture
def token_service_factory():
    return build_token_service


@pytest.fixture
def user_record_factory():
    return make_user_record
