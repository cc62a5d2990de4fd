"""
Pytest fixtures for the garment ERP test suite.

Provides:
- Structured logging configured for the whole run, plus ``captured_logs``
- An in-memory SQLite database (StaticPool) with all tables created once
- A rolled-back Session per test
- Deterministic clock, default configuration and a wired ``ErpServices``
- Material and stock builders used across service tests

Environment Variables:
- GARMENT_ERP_TEST_DATABASE_URL: run the database tests against another
  SQLAlchemy URL (e.g. PostgreSQL).  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from garment_config.schema import ErpConfig
from garment_engines.bom.types import Material
from garment_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from garment_kernel.domain.clock import DeterministicClock
from garment_kernel.domain.values import Money, Quantity
from garment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from garment_services.container import ErpServices
from garment_services.inventory_ledger import MaterialLockRegistry

DEFAULT_TEST_URL = "sqlite+pysqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture garment_erp logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, erp):
            erp.issues.post_issue(issue_id)
            logs = captured_logs()
            assert any(r["message"] == "goods_issue_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("garment_erp")
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
def engine():
    url = os.environ.get("GARMENT_ERP_TEST_DATABASE_URL", DEFAULT_TEST_URL)
    engine = init_engine_from_url(url)
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    """Session whose work is rolled back after the test."""
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    """Clock that moves one second per reading, so receipts are strictly ordered."""
    return DeterministicClock(
        datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
        auto_advance=timedelta(seconds=1),
    )


@pytest.fixture
def config() -> ErpConfig:
    return ErpConfig.with_defaults()


@pytest.fixture
def locks() -> MaterialLockRegistry:
    return MaterialLockRegistry(timeout=5.0)


@pytest.fixture
def erp(session, config, clock, locks) -> ErpServices:
    return ErpServices(session, config, clock=clock, locks=locks)


@pytest.fixture
def make_material(erp) -> Callable[..., Material]:
    """Create a material row; cost defaults to 1.00 USD per base unit."""

    def _make(
        name: str = "Cotton twill",
        base_unit: str = "m",
        cost: str | None = "1.00",
        **kwargs,
    ) -> Material:
        return erp.materials.create_material(name, base_unit, cost_per_unit=cost, **kwargs)

    return _make


@pytest.fixture
def stock(erp) -> Callable[..., None]:
    """Receive layers: ``stock(material, (5, "2.00"), (10, "3.00"))``."""

    def _stock(material: Material, *layers: tuple[int | str, str]) -> None:
        for quantity, unit_cost in layers:
            erp.ledger.receive(
                material.material_id,
                Quantity.of(quantity, material.base_unit),
                Money.of(unit_cost, "USD"),
            )

    return _stock



def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: multi-threaded ledger tests"
    )
