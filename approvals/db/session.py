"""Database engine, session factory, and dependency injection."""

from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from approvals.core.config import settings


def engine_options(url: str) -> Dict[str, Any]:
    """Pool settings for server databases, thread sharing for SQLite."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 80,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **engine_options(settings.DATABASE_URL),
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a DB session per request.

    Anything left uncommitted when the request ends (including a cancelled
    request) is rolled back on close.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
