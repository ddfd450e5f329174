"""Service category model definitions."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func
from backend.database import Base


class ServiceCategory(Base):
    """Groups catalogue services (photography, videography, sound)."""
    __tablename__ = "service_categories"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, unique=True, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text)
    icon = Column(String)
    active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
