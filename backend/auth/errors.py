"""Typed failures raised by the authentication core.

Routers translate these into HTTP responses; nothing here knows about status
codes. Messages are safe to show to a client.
"""


class AuthError(Exception):
    """Base class for authentication failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(AuthError):
    """An account with the requested email already exists."""


class AuthenticationError(AuthError):
    """Credentials or a login-adjacent token were rejected."""


class InvalidTokenError(AuthenticationError):
    """A token was malformed, expired, mis-signed or of the wrong kind."""


class NotFoundError(AuthError):
    """The user a request refers to does not exist."""


class DuplicateUserError(Exception):
    """Raised by a credential store when the email unique constraint fires."""
