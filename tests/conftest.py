"""
Pytest fixtures for the manufacturing costing kernel test suite.

Provides:
- Structured-logging setup and log capture
- SQLite database sessions (one database file per test)
- Container factories, a deterministic clock and a test actor

Environment Variables:
- DATABASE_URL: Database connection URL. When unset each test gets its
  own SQLite file under pytest's tmp_path.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from mfg_config import CostingConfig
from mfg_engines.rollup import CostRollupEngine
from mfg_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from mfg_kernel.domain.clock import DeterministicClock
from mfg_kernel.domain.dtos import ComponentMaster, ContainerStatus
from mfg_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mfg_kernel.models.container import ContainerModel


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

# Containers created by the factory fixture get increasing created_at values
# starting here, so "newest first" ordering is deterministic.
_CREATED_AT_BASE = datetime(2024, 1, 1, 8, 0, 0, tzinfo=timezone.utc)


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
    Capture mfg_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, rollup_engine):
            rollup_engine.calc_unit_cost(ingredients_cost=1, batch_qty=1)
            logs = captured_logs()
            assert any(r["message"] == "unit_cost_estimate_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mfg_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url(tmp_path) -> str:
    """Database URL from the environment, else a per-test SQLite file."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'mfg_kernel_test.db'}"


@pytest.fixture
def db_engine(tmp_path):
    """Engine with all kernel tables created; init also enforces immutability."""
    eng = init_engine_from_url(get_database_url(tmp_path), pool_timeout=10)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    """A session bound to the test database; rolled back and closed after the test."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def session_factory(db_engine):
    """Session factory for services that own their transactions."""
    return get_session_factory()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def test_actor_id():
    """Actor ID for all test operations."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Clock with a fixed starting time."""
    return DeterministicClock()


@pytest.fixture
def costing_config():
    """The shipped defaults: markup 4x, default yield 100%."""
    return CostingConfig()


@pytest.fixture
def rollup_engine(costing_config):
    return CostRollupEngine.from_config(costing_config)


@pytest.fixture
def components():
    """Component master data used by the formula tests."""
    return {
        "OIL-OLIVE": ComponentMaster(
            component_id="OIL-OLIVE",
            name="Olive oil",
            base_unit="g",
            cost_per_base_unit=Decimal("0.023"),
            density=Decimal("0.91"),
        ),
        "LYE": ComponentMaster(
            component_id="LYE",
            name="Sodium hydroxide",
            base_unit="g",
            cost_per_base_unit=Decimal("0.01"),
        ),
        "FRAGRANCE": ComponentMaster(
            component_id="FRAGRANCE",
            name="Lavender fragrance",
            base_unit="ml",
            cost_per_base_unit=Decimal("0.10"),
        ),
        "JAR": ComponentMaster(
            component_id="JAR",
            name="Amber jar",
            base_unit="each",
            cost_per_base_unit=Decimal("0.50"),
            kind="packaging",
        ),
    }


@pytest.fixture
def create_container(session, test_actor_id):
    """
    Factory inserting a committed container row directly.

    Returns the container id. Each call gets a later ``created_at`` than
    the previous one.
    """
    created = []

    def _create(
        *,
        calculated_tare=Decimal("120"),
        refined_tare=None,
        gross=Decimal("1000"),
        net=None,
        status=ContainerStatus.ACTIVE,
        item_id="ITEM-1",
        weight_unit="g",
        location="Warehouse",
        container_code=None,
    ):
        tare = refined_tare if refined_tare is not None else (calculated_tare or Decimal("0"))
        model = ContainerModel(
            item_id=item_id,
            container_code=container_code,
            calculated_tare_weight=calculated_tare,
            refined_tare_weight=refined_tare,
            current_gross_weight=gross,
            current_net_weight=net if net is not None else gross - tare,
            weight_unit=weight_unit,
            status=ContainerStatus(status).value,
            location=location,
            created_by_id=test_actor_id,
            created_at=_CREATED_AT_BASE + timedelta(minutes=len(created)),
        )
        session.add(model)
        session.commit()
        created.append(model.id)
        return model.id

    return _create
