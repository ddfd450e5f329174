"""Database access helpers for authentication."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth.errors import DuplicateUserError
from backend.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    role: str
    first_name: Optional[str]
    last_name: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, user: User) -> "UserRecord":
        return cls(
            id=user.id,
            email=user.email,
            password_hash=user.password_hash,
            role=user.role,
            first_name=user.first_name,
            last_name=user.last_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class CredentialStore(Protocol):
    """What the auth service needs from user persistence."""

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        ...

    def create(
        self,
        *,
        email: str,
        password_hash: str,
        role: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> UserRecord:
        """Persist a user; raise DuplicateUserError if the email is taken."""

    def update_password(self, user_id: str, password_hash: str) -> bool:
        """Return False when no user has ``user_id``."""


class UserRepository:
    """Credential store backed by the ``users`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        return UserRecord.from_model(user) if user else None

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        user = self.db.get(User, user_id)
        return UserRecord.from_model(user) if user else None

    def create(
        self,
        *,
        email: str,
        password_hash: str,
        role: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> UserRecord:
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateUserError(user.email) from exc
        self.db.refresh(user)
        return UserRecord.from_model(user)

    def update_password(self, user_id: str, password_hash: str) -> bool:
        user = self.db.get(User, user_id)
        if user is None:
            return False
        user.password_hash = password_hash
        self.db.commit()
        return True
