"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskme.db.session import get_session_factory
from taskme.i18n import negotiate_locale
from taskme.services.changes import ChangeFeed, get_change_feed
from taskme.services.push import PushGateway, get_push_gateway


def get_locale(request: Request) -> str:
    """Locale negotiated from the request's Accept-Language header."""
    locale = getattr(request.state, "locale", None)
    return locale or negotiate_locale(request.headers.get("accept-language"))


Locale = Annotated[str, Depends(get_locale)]
Feed = Annotated[ChangeFeed, Depends(get_change_feed)]
Gateway = Annotated[PushGateway, Depends(get_push_gateway)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
