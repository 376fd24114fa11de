"""
Pytest fixtures for the workflow test suite.

Provides:
- An in-memory SQLite database shared by the test session
- A per-test session that rolls back everything on teardown
- The default permission table, a deterministic clock and actor factories
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL to test against instead of in-memory SQLite.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from erp_config import load_permission_table, reset_permission_table
from erp_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from erp_kernel.domain.clock import DeterministicClock
from erp_kernel.domain.workflow import PermissionTable
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from erp_services.workflow_service import ActorProfile, WorkflowService

DEFAULT_TEST_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture erp_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_service):
            workflow_service.perform_transition(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("erp_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Initialize the engine once per test session."""
    engine = init_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_TEST_URL))
    yield engine
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per test session."""
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction that is rolled back at
    teardown, undoing every change made during the test.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture(scope="session")
def permission_table() -> PermissionTable:
    """The compiled default permission table."""
    return load_permission_table()


@pytest.fixture(autouse=True)
def _reset_permission_table_cache():
    yield
    reset_permission_table()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def make_actor():
    """Factory for actors with a fresh id and the given role."""

    def _make(role: str) -> ActorProfile:
        return ActorProfile(actor_id=uuid4(), role=role)

    return _make


@pytest.fixture
def workflow_service(session, permission_table, deterministic_clock) -> WorkflowService:
    return WorkflowService(session, table=permission_table, clock=deterministic_clock)
