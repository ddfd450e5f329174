from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth.errors import InvalidTokenError
from backend.auth.jwt_handler import TokenKind, TokenService
from backend.auth.passwords import PasswordHasher
from backend.auth.repository import UserRecord, UserRepository
from backend.auth.service import AuthService
from backend.core import config
from backend.database import get_db

security = HTTPBearer(auto_error=False)


@lru_cache
def get_token_service() -> TokenService:
    return TokenService(
        access_secret=config.JWT_ACCESS_SECRET,
        refresh_secret=config.JWT_REFRESH_SECRET,
        reset_secret=config.JWT_RESET_SECRET,
        issuer=config.JWT_ISSUER,
        audience=config.JWT_AUDIENCE,
        access_expires=timedelta(minutes=config.ACCESS_TOKEN_EXPIRES_MINUTES),
        refresh_expires=timedelta(days=config.REFRESH_TOKEN_EXPIRES_DAYS),
        reset_expires=timedelta(minutes=config.RESET_TOKEN_EXPIRES_MINUTES),
        algorithm=config.JWT_ALGORITHM,
    )


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=config.BCRYPT_ROUNDS)


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(
        UserRepository(db),
        get_password_hasher(),
        get_token_service(),
        default_role=config.REGISTRATION_DEFAULT_ROLE,
    )


def _resolve_user(token: str, service: AuthService) -> UserRecord:
    try:
        payload = service.tokens.verify(TokenKind.ACCESS, token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user = service.get_user(payload.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    service: AuthService = Depends(get_auth_service),
) -> UserRecord:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _resolve_user(credentials.credentials, service)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    service: AuthService = Depends(get_auth_service),
) -> UserRecord | None:
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _resolve_user(credentials.credentials, service)
    except HTTPException:
        return None


def require_role(*allowed_roles: str):
    def dependency(current_user: UserRecord = Depends(get_current_user)) -> UserRecord:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return dependency


require_admin = require_role("admin")
