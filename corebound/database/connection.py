"""Database connection and session management.

Provides the SQLAlchemy engine and session factory. The URL comes from
CoreboundConfig (DATABASE_URL or the Docker secret db_password).
"""

import logging
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..config import CoreboundConfig

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine, pooled for server databases.

    pool_pre_ping checks connection health before use; pool_size and
    max_overflow bound the connections held during peak load. SQLite
    keeps its default pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=False  # Set to True for SQL debugging
    )


DATABASE_URL = CoreboundConfig.from_env().database_url

engine = create_db_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def get_db() -> Generator:
    """Yield a database session, rolling back on error.

    Used as a FastAPI dependency; tests override it with an in-memory
    SQLite session.

    Example:
        >>> @router.get("/api/strategies")
        ... def list_strategies(db: Session = Depends(get_db)):
        ...     return StrategyRepository(db).list_for_user(user.id)
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Create all tables that do not exist yet.

    For production use the Alembic migrations instead.
    """
    from .models import Base
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


def test_connection(bind: Engine = None) -> bool:
    """Check that the database answers a trivial query.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
