"""Database session management with connection pooling"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from yield_ledger.config import settings


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # Writers queue on the database lock instead of failing immediately
        return create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 30})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    # Committed objects stay readable after the unit's session closes
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)


def get_session_factory() -> sessionmaker:
    """Dependency injection for the atomic-unit session factory"""
    return SessionLocal
