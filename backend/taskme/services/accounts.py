"""Account service: registration, sign-in, profile and push-token updates."""

import hashlib
import hmac
import secrets
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.config import get_settings
from taskme.db.base import utcnow
from taskme.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from taskme.models.user import User

logger = structlog.get_logger()

HASH_SCHEME = "pbkdf2_sha256"


def hash_password(password: str, iterations: int | None = None) -> str:
    """Hash a password as ``scheme$iterations$salt$digest``."""
    iterations = iterations or get_settings().password_hash_iterations
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{HASH_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        scheme, iterations, salt, expected = encoded.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if scheme != HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), rounds)
    return hmac.compare_digest(digest.hex(), expected)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    """Service for user accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    def _check_password(self, password: str) -> None:
        if len(password or "") < self.settings.password_min_length:
            raise ValidationError("weak_password")

    async def get_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("user_not_found")
        return user

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def register(self, email: str, password: str, name: str, phone: str) -> User:
        """Create an account.

        Raises:
            ValidationError: missing name or phone, or a short password
            ConflictError: e-mail already registered
        """
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name:
            raise ValidationError("name_required")
        if not phone:
            raise ValidationError("phone_required")
        self._check_password(password)

        if await self.get_by_email(email) is not None:
            raise ConflictError("email_in_use")

        user = User(
            email=normalize_email(email),
            password_hash=hash_password(password),
            name=name,
            phone=phone,
        )
        self.db.add(user)
        await self.db.commit()

        logger.info("user_registered", user_id=str(user.id))
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials and stamp the login time."""
        user = await self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("login_failed", email=normalize_email(email))
            raise AuthenticationError("invalid_credentials")

        user.last_login_at = utcnow()
        await self.db.commit()
        logger.info("user_logged_in", user_id=str(user.id))
        return user

    async def update_profile(
        self,
        user: User,
        name: str | None = None,
        phone: str | None = None,
        password: str | None = None,
    ) -> User:
        if name is not None:
            if not name.strip():
                raise ValidationError("name_required")
            user.name = name.strip()
        if phone is not None:
            if not phone.strip():
                raise ValidationError("phone_required")
            user.phone = phone.strip()
        if password is not None:
            self._check_password(password)
            user.password_hash = hash_password(password)

        await self.db.commit()
        logger.info(
            "profile_updated",
            user_id=str(user.id),
            password_changed=password is not None,
        )
        return user

    async def register_push_token(self, user: User, token: str | None) -> User:
        """Store the device token pushes go to; ``None`` clears it."""
        user.fcm_token = token.strip() if token and token.strip() else None
        await self.db.commit()
        logger.info("push_token_registered", user_id=str(user.id), cleared=user.fcm_token is None)
        return user

    async def list_users(self, limit: int | None = None) -> list[User]:
        """Users for the share picker, ordered by e-mail."""
        limit = limit or self.settings.users_list_limit
        result = await self.db.execute(select(User).order_by(User.email.asc()).limit(limit))
        return list(result.scalars().all())
