"""Password hashing helpers using bcrypt."""

import bcrypt

DEFAULT_ROUNDS = 12
# bcrypt ignores input past this many bytes.
MAX_PASSWORD_BYTES = 72


def password_byte_length(password: str) -> int:
    return len(password.encode("utf-8"))


class PasswordHasher:
    """Salted bcrypt hashing with a fixed work factor.

    Passwords longer than ``MAX_PASSWORD_BYTES`` are refused rather than
    truncated, so two passwords sharing a long prefix never hash alike.
    """

    def __init__(self, *, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        if password_byte_length(password) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def compare(self, password: str, hashed: str) -> bool:
        if password_byte_length(password) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash.
            return False
