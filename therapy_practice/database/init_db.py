"""
Database initialization and connection management.

This module provides functions for:
1. Creating the engine and session factory
2. Creating the schema for development databases
3. Handing out request-scoped sessions to FastAPI routes
4. Resetting the connection pool
"""

from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from therapy_practice.config import settings
from therapy_practice.common.logger import app_logger
from therapy_practice.database.base import Base

# Setup module logger
logger = app_logger.getChild("database.init_db")

# Global engine instance
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create an engine with options suited to the database backend.

    SQLite connections get foreign key enforcement switched on so that
    ``ON DELETE`` rules behave as they do on PostgreSQL. In-memory SQLite
    databases share a single connection.

    Args:
        database_url: Database connection URL
        echo: Whether to echo SQL statements
        pool_size: Connection pool size (server databases only)
        max_overflow: Maximum number of connections above pool_size
        pool_timeout: Timeout for getting a connection from the pool

    Returns:
        Engine instance
    """
    kwargs = {"echo": echo}

    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update({
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })

    engine = create_engine(database_url, **kwargs)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory used by routes and tests alike."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_schema(engine: Engine) -> None:
    """Create all tables registered on the declarative base."""
    # Register the models on the metadata before creating tables
    from therapy_practice.assessments import database_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema created with {len(Base.metadata.tables)} tables")


def initialize_database(
    database_url: Optional[str] = None,
    echo: Optional[bool] = None,
    create_tables: Optional[bool] = None,
) -> Engine:
    """
    Initialize the global engine and session factory from settings.

    Args:
        database_url: Overrides ``settings.DATABASE_URL``
        echo: Overrides ``settings.SQL_ECHO``
        create_tables: Overrides ``settings.AUTO_CREATE_SCHEMA``

    Returns:
        Engine instance
    """
    global _engine, _session_factory

    database_url = database_url or settings.DATABASE_URL
    echo = settings.SQL_ECHO if echo is None else echo
    create_tables = settings.AUTO_CREATE_SCHEMA if create_tables is None else create_tables

    try:
        logger.info(f"Initializing database with URL: {database_url[:10]}... and pool size: {settings.DB_POOL_SIZE}")

        _engine = build_engine(
            database_url,
            echo=echo,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )
        _session_factory = create_session_factory(_engine)

        # Test connection
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        if create_tables:
            create_schema(_engine)

        logger.info("Database engine initialized successfully")
        return _engine

    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise


def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _session_factory

    if _engine:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine closed successfully")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a request-scoped database session.

    Services commit their own transactions; anything left open when the
    request fails is rolled back here.

    Yields:
        Database session
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized or initialization failed")

    session = _session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
