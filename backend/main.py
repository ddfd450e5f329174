import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import create_schema
from backend.routes import (
    auth_routes,
    booking_routes,
    contact_routes,
    portfolio_routes,
    service_category_routes,
    service_routes,
)

logging.basicConfig(
    level=logging.DEBUG if config.is_development() else logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Studio API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_application() -> None:
    config.validate_runtime_config()
    try:
        create_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Studio API Running'}


app.include_router(auth_routes.router, prefix='/api/auth')
app.include_router(booking_routes.router, prefix='/api/bookings')
app.include_router(contact_routes.router, prefix='/api/contact')
app.include_router(portfolio_routes.router, prefix='/api/portfolio')
app.include_router(service_routes.router, prefix='/api/services')
app.include_router(service_category_routes.router, prefix='/api/service-categories')
