"""Persistence: SQLAlchemy models, connection management and repositories."""

from .models import Base
from .connection import engine, SessionLocal, get_db, init_db, test_connection

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
    "test_connection",
]
