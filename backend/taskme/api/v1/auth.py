"""Authentication endpoints: e-mail/password accounts with JWT bearer tokens."""

from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.config import get_settings
from taskme.db.session import get_db_session
from taskme.exceptions import AuthenticationError
from taskme.models.user import User
from taskme.services.accounts import AccountService

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


class TokenResponse(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: str | None = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str
    phone: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User information response."""

    id: UUID
    email: str
    name: str
    phone: str | None
    has_push_token: bool
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            has_push_token=bool(user.fcm_token),
            created_at=user.created_at,
        )


def _encode(user_id: UUID, token_type: str, lifetime: timedelta) -> str:
    to_encode = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": token_type,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    return _encode(
        user_id,
        "access",
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes),
    )


def create_refresh_token(user_id: UUID) -> str:
    """Create a JWT refresh token."""
    return _encode(user_id, "refresh", timedelta(days=settings.jwt_refresh_token_expire_days))


def decode_token(token: str, expected_type: str = "access") -> UUID:
    """Validate a token and return the user id it was issued for.

    Raises:
        AuthenticationError: bad signature, expired, or wrong token type
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
        user_id = payload.get("sub")
        if user_id is None or payload.get("type") != expected_type:
            raise AuthenticationError("invalid_token")
        return UUID(user_id)
    except (JWTError, ValueError) as e:
        raise AuthenticationError("invalid_token") from e


async def authenticate_token(token: str, db: AsyncSession, expected_type: str = "access") -> User:
    """Resolve a bearer token to its user."""
    user_id = decode_token(token, expected_type)
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("invalid_token")
    return user


def issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Get the current authenticated user from JWT token."""
    if not credentials:
        raise AuthenticationError("not_authenticated")
    return await authenticate_token(credentials.credentials, db)


# Type alias for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """Create an account and sign it in."""
    user = await AccountService(db).register(
        email=request.email,
        password=request.password,
        name=request.name,
        phone=request.phone,
    )
    return issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """Exchange e-mail and password for tokens."""
    user = await AccountService(db).authenticate(request.email, request.password)
    return issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """Refresh access token using refresh token."""
    if not credentials:
        raise AuthenticationError("not_authenticated")
    user = await authenticate_token(credentials.credentials, db, expected_type="refresh")
    return issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser) -> UserResponse:
    """Get current user information."""
    return UserResponse.from_user(current_user)
