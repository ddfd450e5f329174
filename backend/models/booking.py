"""Booking model definitions."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from backend.database import Base


class Booking(Base):
    """Represents a client session request."""
    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    client_name = Column(String, nullable=False)
    client_email = Column(String, nullable=False, index=True)
    client_phone = Column(String)
    service_id = Column(String, ForeignKey("services.id", ondelete="SET NULL"))
    booking_date = Column(DateTime, nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="pending")
    project_details = Column(Text)
    budget_range = Column(String)
    location = Column(String)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
