"""Database package."""

from taskme.db.base import Base, BaseModel
from taskme.db.session import DBSession, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "get_db_session"]
