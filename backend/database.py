from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


def _engine_kwargs(database_url: str) -> dict:
    kwargs: dict = {"echo": config.DATABASE_ECHO}
    if database_url.startswith("sqlite"):
        # FastAPI runs sync dependencies in a threadpool.
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


engine = create_engine(config.DATABASE_URL, **_engine_kwargs(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def create_schema() -> None:
    # Model modules register their tables on Base when imported.
    from backend.models import (  # noqa: F401
        booking,
        contact_inquiry,
        portfolio_item,
        service,
        service_category,
        user,
    )

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
