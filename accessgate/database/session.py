"""
Database session management with connection pooling.

Provides the shared FastAPI dependency for database sessions used by the
authorization gates. Uses SQLAlchemy with connection pooling for production
workloads.

Usage:
    from accessgate.database.session import get_db_session

    @router.get("/leads")
    async def list_leads(db: Session = Depends(get_db_session)):
        ...
"""

import os
import logging
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

# Module-level engine singleton
_engine = None
_SessionLocal = None


def _get_database_url() -> str:
    """
    Get and normalize the database URL from environment.

    Handles the legacy postgres:// URL scheme by converting to postgresql://.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def enable_sqlite_savepoints(engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself on pysqlite connections.

    pysqlite starts transactions lazily, so a SAVEPOINT issued before any
    write opens (and its RELEASE commits) a transaction of its own. Nested
    transactions, used by side_effect_session() on connection binds, need
    the explicit BEGIN.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine():
    """
    Get or create the database engine singleton.

    SQLite URLs (local development) get a plain engine; everything else
    uses a QueuePool with pre-ping so stale connections are replaced.
    """
    global _engine
    if _engine is None:
        try:
            database_url = _get_database_url()
            if database_url.startswith("sqlite"):
                _engine = create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                )
                enable_sqlite_savepoints(_engine)
            else:
                _engine = create_engine(
                    database_url,
                    poolclass=QueuePool,
                    pool_size=5,
                    max_overflow=10,
                    pool_pre_ping=True,
                    pool_recycle=1800,
                )
            logger.info("Database engine created", extra={"dialect": _engine.dialect.name})
        except ValueError as e:
            logger.error("Failed to create database engine", extra={"error": str(e)})
            raise
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory singleton."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=engine
        )
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine and forget the singletons (tests, reconfiguration)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Creates a new session for each request and ensures proper cleanup.
    Raises HTTP 503 if the database is not configured.
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured"
        )

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
