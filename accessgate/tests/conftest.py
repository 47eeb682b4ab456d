"""
Root test configuration and fixtures.

Provides database fixtures and model factories shared by all tests.
Uses PostgreSQL when DATABASE_URL is set, otherwise SQLite in-memory.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import yaml
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from accessgate.config.access_policy import reset_access_policy
from accessgate.database.session import enable_sqlite_savepoints
from accessgate.tests.factories import ModelFactory, create_all_tables

# Set test environment
os.environ.setdefault("ENV", "test")


def _get_test_database_url() -> str:
    """Get database URL for tests."""
    database_url = os.getenv("DATABASE_URL")

    if database_url:
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    # Default to SQLite for unit tests if no PostgreSQL available
    return "sqlite:///:memory:"


def _is_postgres() -> bool:
    """Check if using PostgreSQL."""
    return _get_test_database_url().startswith("postgresql")


@pytest.fixture(scope="session")
def db_engine():
    """
    Create database engine for tests.

    Uses PostgreSQL if DATABASE_URL is set, otherwise SQLite in-memory.
    """
    database_url = _get_test_database_url()

    if _is_postgres():
        try:
            engine = create_engine(database_url, pool_pre_ping=True)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            pytest.skip(
                f"PostgreSQL not available. Set DATABASE_URL or use SQLite. Error: {e}"
            )
    else:
        # SQLite in-memory for fast unit tests
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        enable_sqlite_savepoints(engine)

    create_all_tables(engine)

    yield engine

    from accessgate.db_base import Base
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create database session with transaction rollback for test isolation.

    Each test gets a fresh session that rolls back after the test completes.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=connection)
    session = SessionLocal()

    if _is_postgres():
        # Use savepoints for PostgreSQL
        nested = connection.begin_nested()

        @event.listens_for(session, "after_transaction_end")
        def restart_savepoint(session, transaction):
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = connection.begin_nested()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(autouse=True)
def _reset_access_policy():
    """Each test loads config/access_policy.yml afresh."""
    reset_access_policy()
    yield
    reset_access_policy()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# =============================================================================
# Config fixtures
# =============================================================================

@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("access_policy.yml", {"tenant_switch": {...}})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w") as f:
            yaml.dump(config, f)
        return config_path
    return _make


# =============================================================================
# Model factories
# =============================================================================

@pytest.fixture
def factory(db_session) -> ModelFactory:
    return ModelFactory(db_session)


@pytest.fixture
def build_context(db_session):
    """
    Build a RequestContext the way get_request_context does.

    Usage:
        ctx = build_context(user)                 # own memberships
        ctx = build_context(user, tenant_id=t.id) # token-pinned tenant
    """
    from accessgate.entitlements.context_resolver import resolve_entitlements
    from accessgate.platform.actor import resolve_actor
    from accessgate.platform.request_context import RequestContext

    def _build(user, tenant_id=None, partner_id=None) -> RequestContext:
        actor = resolve_actor(db_session, user.id, tenant_id=tenant_id, partner_id=partner_id)
        ctx = RequestContext.for_actor(actor)
        entitlements = resolve_entitlements(db_session, ctx.tenant_id)
        return ctx.with_entitlements(entitlements.subscription, entitlements.plan_features)

    return _build
