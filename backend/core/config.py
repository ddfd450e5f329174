import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./studio.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

PLACEHOLDER_SECRETS = {
    "your-secret-key",
    "your-refresh-secret-key",
    "your-reset-secret-key",
}

JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", "your-secret-key")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "your-refresh-secret-key")
JWT_RESET_SECRET = os.getenv("JWT_RESET_SECRET", "your-reset-secret-key")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ISSUER = os.getenv("JWT_ISSUER", "derji-productions")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "derji-productions-client")

ACCESS_TOKEN_EXPIRES_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRES_MINUTES", "15"))
REFRESH_TOKEN_EXPIRES_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS", "7"))
RESET_TOKEN_EXPIRES_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRES_MINUTES", "60"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Public registration currently hands out admin; see DESIGN.md before changing.
REGISTRATION_DEFAULT_ROLE = os.getenv("REGISTRATION_DEFAULT_ROLE", "admin")


def is_development() -> bool:
    return APP_ENV.lower() == "development"


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    secrets = (JWT_ACCESS_SECRET, JWT_REFRESH_SECRET, JWT_RESET_SECRET)
    if any(secret in PLACEHOLDER_SECRETS for secret in secrets):
        raise RuntimeError("JWT_ACCESS_SECRET, JWT_REFRESH_SECRET and JWT_RESET_SECRET must be set in production.")
    if REGISTRATION_DEFAULT_ROLE not in {"admin", "user"}:
        raise RuntimeError("REGISTRATION_DEFAULT_ROLE must be 'admin' or 'user'.")
