"""
Database Persistence Layer - Core Engine.

============================================================
CHAIN INDEX PERSISTENCE
============================================================

Engine, session factory and transaction boundaries for the
chain index.

Requirements:
- SQLAlchemy ORM (PostgreSQL in production, SQLite in tests)
- Explicit transaction management
- Structured logging with row counts
- Hard failures on persistence errors

============================================================
"""

import os
import logging
from typing import Generator, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

from core.exceptions import PersistenceFailure

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite:///chain_index.db"


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")
    if url and url.startswith("postgresql+asyncpg"):
        # Sessions are synchronous
        url = url.replace("postgresql+asyncpg", "postgresql")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine.

    Server databases get a QueuePool. SQLite (tests, local runs) gets
    a StaticPool so an in-memory database survives across sessions.

    Args:
        database_url: Connection URL, defaults to DATABASE_URL
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = database_url or get_database_url()

    logger.info(f"Creating database engine for: {url.split('@')[-1]}")

    if _is_sqlite(url):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
            future=True,
        )
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            echo=echo,
            future=True,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to an engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def transaction_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    SQLAlchemy errors are re-raised as PersistenceFailure; any other
    exception propagates unchanged after the rollback.

    Usage:
        with transaction_scope(factory) as session:
            persist_block_reward(session, fact)
            persist_block(session, ...)
            # Commits automatically at end
    """
    session = session_factory()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise PersistenceFailure(f"Transaction failed: {e}", cause=e) from e
    except BaseException as e:
        logger.error(f"Transaction failed with unexpected error: {e!r}")
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def verify_database_connection(engine: Engine) -> bool:
    """
    Verify database connection is working.

    Raises:
        PersistenceFailure if connection fails
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise PersistenceFailure(f"Cannot connect to database: {e}", cause=e) from e


def create_all_tables(engine: Engine) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        PersistenceFailure if table creation fails
    """
    from . import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise PersistenceFailure(f"Table creation failed: {e}", cause=e) from e


def initialize_database(engine: Engine) -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    """
    logger.info("=" * 60)
    logger.info("INITIALIZING CHAIN INDEX DATABASE")
    logger.info("=" * 60)

    verify_database_connection(engine)
    create_all_tables(engine)

    logger.info("DATABASE INITIALIZATION COMPLETE")


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
    "initialize_database",
]
