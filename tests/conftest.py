"""Shared pytest fixtures for all tests."""

import sqlite3
import pytest
from pathlib import Path

from cli.migrate import apply_pending
from config import Config, get_migrations_dir
from services.base import Services
from tests.helpers import FakeProvider


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing.

    Yields:
        sqlite3.Connection: Connection to in-memory database.
    """
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    yield conn
    conn.close()


@pytest.fixture
def test_config(tmp_path):
    """Create a test configuration pointing to a temporary database.

    Args:
        tmp_path: pytest tmp_path fixture for temporary directory.

    Returns:
        Config: Test configuration object.
    """
    return Config(
        base_dir=tmp_path / "ledger",
        db_data_dir=tmp_path / "ledger" / "db",
        db_filename="test.db",
        log_level="DEBUG",
        log_dir=tmp_path / "ledger" / "logs",
        ingest_batch_size=3,
        date_format="UK",
        llm_enabled=False,
        llm_provider="openai",
        llm_openai_api_key="",
        llm_openai_model="gpt-4o-mini",
        llm_timeout_seconds=1.0,
    )


@pytest.fixture
def db_manager_with_schema(test_db):
    """Create a DatabaseManager with schema already set up.

    This fixture provides a DatabaseManager that uses an in-memory database
    with all migrations already applied.

    Args:
        test_db: In-memory database connection fixture.

    Returns:
        DatabaseManager: Database manager with schema ready.
    """

    class TestDatabaseManager:
        """Test database manager that uses in-memory connection."""

        db_path = Path(":memory:")

        def __init__(self, conn):
            self.conn = conn
            self.migrations_dir = get_migrations_dir()

        def exists(self):
            return True

        def connect(self):
            """Return a context manager for the test connection."""
            return _TestConnectionContext(self.conn)

    class _TestConnectionContext:
        """Context manager for test database connections."""

        def __init__(self, conn):
            self.conn = conn

        def __enter__(self):
            return self.conn

        def __exit__(self, exc_type, exc_val, exc_tb):
            # Don't close the connection - let the fixture handle it
            pass

    manager = TestDatabaseManager(test_db)
    apply_pending(test_db, manager)
    return manager


@pytest.fixture
def fake_provider():
    """An LLM provider that returns no suggestions until configured."""
    return FakeProvider()


@pytest.fixture
def services(test_config, db_manager_with_schema, fake_provider):
    """Create a Services container with test database.

    This fixture provides access to all services with a clean test database
    and a fake LLM provider.

    Args:
        test_config: Test configuration fixture.
        db_manager_with_schema: Database manager with schema set up.
        fake_provider: Fake LLM provider fixture.

    Returns:
        Services: Services container for testing.
    """
    return Services(
        test_config, db_manager=db_manager_with_schema, llm_provider=fake_provider
    )
