import logging
import re
from datetime import datetime

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator

from backend.auth.dependencies import get_auth_service, get_current_user
from backend.auth.errors import (
    AuthError,
    AuthenticationError,
    ConflictError,
    InvalidTokenError,
    NotFoundError,
)
from backend.auth.passwords import MAX_PASSWORD_BYTES, password_byte_length
from backend.auth.repository import UserRecord
from backend.auth.service import AuthResult, AuthService
from backend.core import config

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_NAME_LENGTH = 100
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
FORGOT_PASSWORD_MESSAGE = 'If a user with this email exists, a password reset link has been sent'

# Order matters: InvalidTokenError is an AuthenticationError.
ERROR_STATUS_CODES: list[tuple[type[AuthError], int]] = [
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidTokenError, status.HTTP_401_UNAUTHORIZED),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
]


def to_http_exception(exc: AuthError, detail: str | None = None) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=detail or exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail or exc.message)


def normalize_email_field(value: str) -> str:
    try:
        return validate_email(value.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValueError('Invalid email format') from exc


def check_password_strength(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
    if password_byte_length(value) > MAX_PASSWORD_BYTES:
        raise ValueError(f'Password must not exceed {MAX_PASSWORD_BYTES} bytes')
    if not (re.search(r'[a-z]', value) and re.search(r'[A-Z]', value) and re.search(r'\d', value)):
        raise ValueError(
            'Password must contain at least one lowercase letter, one uppercase letter, and one number'
        )
    return value


class RegisterRequest(BaseModel):
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email_address(cls, value: str) -> str:
        return normalize_email_field(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None
        if len(normalized) > MAX_NAME_LENGTH:
            raise ValueError(f'Name must be {MAX_NAME_LENGTH} characters or fewer.')
        if not NAME_PATTERN.match(normalized):
            raise ValueError('Name can only contain letters, spaces, hyphens, and apostrophes')
        return normalized


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email_address(cls, value: str) -> str:
        return normalize_email_field(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required')
        return value


class RefreshRequest(BaseModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_refresh_token(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Refresh token is required')
        return value.strip()


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email_address(cls, value: str) -> str:
        return normalize_email_field(value)


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str

    @field_validator('token')
    @classmethod
    def validate_token(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Reset token is required')
        return value.strip()

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AuthResultResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'
    expires_in: int


class AuthResponse(BaseModel):
    message: str
    data: AuthResultResponse


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordResponse(BaseModel):
    message: str
    reset_token: str | None = None


class ProfileResponse(BaseModel):
    message: str
    user: UserResponse


def build_auth_response(message: str, result: AuthResult) -> AuthResponse:
    return AuthResponse(
        message=message,
        data=AuthResultResponse(
            user=UserResponse.model_validate(result.user),
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            expires_in=result.expires_in,
        ),
    )


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    try:
        result = service.register(data.email, data.password, data.first_name, data.last_name)
    except ConflictError as exc:
        raise to_http_exception(exc) from exc

    return build_auth_response('User registered successfully', result)


@router.post('/login', response_model=AuthResponse)
def login(data: LoginRequest, service: AuthService = Depends(get_auth_service)):
    try:
        result = service.login(data.email, data.password)
    except AuthenticationError as exc:
        raise to_http_exception(exc) from exc

    return build_auth_response('Login successful', result)


@router.post('/refresh', response_model=AuthResponse)
def refresh(data: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    try:
        result = service.refresh(data.refresh_token)
    except AuthenticationError as exc:
        raise to_http_exception(exc, detail='Invalid or expired refresh token') from exc

    return build_auth_response('Token refreshed successfully', result)


@router.post('/forgot-password', response_model=ForgotPasswordResponse)
def forgot_password(data: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)):
    try:
        reset_token = service.forgot_password(data.email)
    except NotFoundError:
        return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE)

    # Delivery by email is handled outside this service; development builds
    # echo the token so the reset flow can be exercised locally.
    return ForgotPasswordResponse(
        message=FORGOT_PASSWORD_MESSAGE,
        reset_token=reset_token if config.is_development() else None,
    )


@router.post('/reset-password', response_model=MessageResponse)
def reset_password(data: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    try:
        service.reset_password(data.token, data.new_password)
    except InvalidTokenError as exc:
        raise to_http_exception(exc, detail='Invalid or expired reset token') from exc
    except NotFoundError as exc:
        raise to_http_exception(exc) from exc

    return MessageResponse(message='Password reset successfully')


@router.post('/logout', response_model=MessageResponse)
def logout(current_user: UserRecord = Depends(get_current_user)):
    # Tokens are stateless; the client discards them.
    logger.info('User %s logged out', current_user.id)
    return MessageResponse(message='Logout successful')


@router.get('/me', response_model=ProfileResponse)
def me(current_user: UserRecord = Depends(get_current_user)):
    return ProfileResponse(
        message='Profile retrieved successfully',
        user=UserResponse.model_validate(current_user),
    )
