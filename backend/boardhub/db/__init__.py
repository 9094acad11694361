"""Database package."""

from boardhub.db.base import Base, BaseModel
from boardhub.db.session import get_db_session

__all__ = ["Base", "BaseModel", "get_db_session"]
