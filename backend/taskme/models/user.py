"""User profile model."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from taskme.db.base import BaseModel


class User(BaseModel):
    """Registered user with profile data and the latest push token."""

    __tablename__ = "users"

    # Auth-provided identity
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Push messaging token (latest registered device/browser)
    fcm_token: Mapped[str | None] = mapped_column(String(500), nullable=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def display_name(self) -> str:
        """Name shown to other users; falls back to the e-mail address."""
        return self.name or self.email

    def __repr__(self) -> str:
        try:
            return f"<User {self.email}>"
        except Exception:
            return f"<User id={self.id}>"
