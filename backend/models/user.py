"""User model definitions."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, func
from backend.database import Base


class User(Base):
    """Represents an account that can sign in to the admin area."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="admin")  # admin/user
    first_name = Column(String)
    last_name = Column(String)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
