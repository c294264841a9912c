"""Database connection and session management for the transaction ledger."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from paypal_restful.config import settings

# Base class for all ORM models
Base = declarative_base()


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Create a SQLAlchemy engine for the ledger database.

    Args:
        database_url: SQLAlchemy URL. If None, uses settings.database_url

    Returns:
        Configured SQLAlchemy engine
    """
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        # In-memory SQLite only lives as long as its single connection.
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            options["poolclass"] = StaticPool
        return create_engine(url, echo=settings.debug, **options)

    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,
        echo=settings.debug,
    )


def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with session_scope(factory) as session:
            TransactionRepository(session).list_for_order(42)

    Automatically commits on success, rolls back on exception.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create the ledger tables if they don't exist."""
    # Registers the ORM models on Base.metadata.
    from paypal_restful.infrastructure import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine: Engine) -> None:
    """
    Drop all ledger tables.

    WARNING: This is destructive and should only be used for testing.
    """
    Base.metadata.drop_all(bind=engine)
