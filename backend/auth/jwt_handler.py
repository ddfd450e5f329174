"""Signed access, refresh and reset tokens."""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import jwt

from backend.auth.errors import InvalidTokenError

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Invalid or expired token"


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"


class TokenSubject(Protocol):
    id: str
    email: str
    role: str


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    email: str
    role: str
    type: TokenKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify JWTs, one secret and lifetime per token kind.

    Verification checks signature, issuer, audience and expiry, then the
    ``type`` claim. A token signed for one kind is never accepted as another
    even if two kinds are configured with the same secret.
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        reset_secret: str,
        issuer: str,
        audience: str,
        access_expires: timedelta = timedelta(minutes=15),
        refresh_expires: timedelta = timedelta(days=7),
        reset_expires: timedelta = timedelta(hours=1),
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
            TokenKind.RESET: reset_secret,
        }
        self._expires = {
            TokenKind.ACCESS: access_expires,
            TokenKind.REFRESH: refresh_expires,
            TokenKind.RESET: reset_expires,
        }
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self._clock = clock

        if len(set(self._secrets.values())) < len(self._secrets):
            logger.warning("Token kinds share a signing secret; configure distinct JWT secrets.")

    def expires_in(self, kind: TokenKind) -> int:
        """Lifetime of ``kind`` tokens in seconds."""
        return int(self._expires[kind].total_seconds())

    def issue(self, kind: TokenKind, user: TokenSubject) -> str:
        now = self._clock()
        payload = {
            "userId": user.id,
            "email": user.email,
            "role": user.role,
            "type": kind.value,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + self._expires[kind],
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def verify(self, kind: TokenKind, token: str) -> TokenPayload:
        try:
            claims = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as exc:
            logger.debug("Rejected %s token: expired", kind.value)
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE) from exc
        except jwt.PyJWTError as exc:
            logger.debug("Rejected %s token: %s", kind.value, type(exc).__name__)
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE) from exc

        if claims.get("type") != kind.value:
            logger.debug("Rejected %s token: type claim is %r", kind.value, claims.get("type"))
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE)

        user_id = claims.get("userId")
        email = claims.get("email")
        role = claims.get("role")
        if not isinstance(user_id, str) or not isinstance(email, str) or not isinstance(role, str):
            logger.debug("Rejected %s token: missing subject claims", kind.value)
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE)

        return TokenPayload(user_id=user_id, email=email, role=role, type=kind)
