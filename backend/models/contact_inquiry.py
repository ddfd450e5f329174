"""Contact inquiry model definitions."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text, func
from backend.database import Base


class ContactInquiry(Base):
    """Represents a message sent through the public contact form."""
    __tablename__ = "contact_inquiries"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    phone = Column(String)
    subject = Column(String)
    message = Column(Text, nullable=False)
    service_interest = Column(String)
    status = Column(String, nullable=False, default="new")
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
