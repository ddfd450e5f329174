"""Portfolio item model definitions."""

from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text, func
from backend.database import Base


class PortfolioItem(Base):
    """Represents a showcased project."""
    __tablename__ = "portfolio_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    title = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String, nullable=False, index=True)
    client_name = Column(String)
    project_date = Column(DateTime)
    featured = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
