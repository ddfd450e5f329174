"""Service model definitions."""

from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from backend.database import Base


class Service(Base):
    """Represents a bookable offering in the service catalogue."""
    __tablename__ = "services"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    category_id = Column(String, ForeignKey("service_categories.id"), nullable=False, index=True)
    subcategory = Column(String)
    description = Column(Text)
    base_price = Column(Numeric(10, 2, asdecimal=False))
    price_type = Column(String, nullable=False, default="fixed")  # fixed/hourly/package
    duration_minutes = Column(Integer)
    features = Column(JSON)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
