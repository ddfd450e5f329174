"""High-level authentication workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from backend.auth.errors import (
    AuthenticationError,
    ConflictError,
    DuplicateUserError,
    NotFoundError,
)
from backend.auth.jwt_handler import TokenKind, TokenService
from backend.auth.passwords import PasswordHasher
from backend.auth.repository import CredentialStore, UserRecord, normalize_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
EMAIL_TAKEN_MESSAGE = "User already exists with this email"


@dataclass
class AuthResult:
    user: UserRecord
    access_token: str
    refresh_token: str
    expires_in: int


class AuthService:
    """Registration, login, token refresh and password reset.

    The credential store is injected per request; the hasher and token
    service are stateless and can be shared between requests.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        *,
        default_role: str = "admin",
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.default_role = default_role

    def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> AuthResult:
        normalized = normalize_email(email)
        if self.store.find_by_email(normalized):
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        password_hash = self.hasher.hash(password)
        try:
            user = self.store.create(
                email=normalized,
                password_hash=password_hash,
                role=self.default_role,
                first_name=first_name or None,
                last_name=last_name or None,
            )
        except DuplicateUserError as exc:
            # Lost a race with a concurrent registration for the same email.
            raise ConflictError(EMAIL_TAKEN_MESSAGE) from exc

        logger.info("Registered user %s", user.id)
        return self._issue_pair(user)

    def login(self, email: str, password: str) -> AuthResult:
        user = self.store.find_by_email(normalize_email(email))
        if user is None or not self.hasher.compare(password, user.password_hash):
            logger.warning("Rejected login attempt")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        logger.info("User %s logged in", user.id)
        return self._issue_pair(user)

    def refresh(self, refresh_token: str) -> AuthResult:
        payload = self.tokens.verify(TokenKind.REFRESH, refresh_token)
        user = self.store.find_by_id(payload.user_id)
        if user is None:
            raise AuthenticationError("User not found")
        # TODO: track refresh-token families so a rotated token can be revoked.
        return self._issue_pair(user)

    def forgot_password(self, email: str) -> str:
        """Return a reset token, or raise NotFoundError for unknown emails.

        Callers facing the public must not reveal which of the two happened.
        """
        user = self.store.find_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("User not found")
        return self.tokens.issue(TokenKind.RESET, user)

    def reset_password(self, reset_token: str, new_password: str) -> None:
        payload = self.tokens.verify(TokenKind.RESET, reset_token)
        if not self.store.update_password(payload.user_id, self.hasher.hash(new_password)):
            raise NotFoundError("User not found")
        logger.info("Password reset for user %s", payload.user_id)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.store.find_by_id(user_id)

    def _issue_pair(self, user: UserRecord) -> AuthResult:
        return AuthResult(
            user=user,
            access_token=self.tokens.issue(TokenKind.ACCESS, user),
            refresh_token=self.tokens.issue(TokenKind.REFRESH, user),
            expires_in=self.tokens.expires_in(TokenKind.ACCESS),
        )
