"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from unittest.mock import AsyncMock, Mock

import pytest

from querygpt.config import clear_settings_cache
from querygpt.llm.client import ChatServiceClient
from querygpt.llm.models import ChatReply
from querygpt.models.schema import (
    ColumnToTableMapping,
    Relationship,
    SchemaContext,
    TableField,
    TableSchema,
)
from querygpt.schema.store import SchemaContextStore

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires a reachable chat service)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """
    Configure logging for tests.

    Captures DEBUG and re-enables logging afterwards, since the CLI
    disables it globally.
    """
    caplog.set_level(logging.DEBUG)
    yield
    logging.disable(logging.NOTSET)


@pytest.fixture
def disable_logging():
    """
    Disable logging for specific tests.

    Usage:
        def test_something(disable_logging):
            # Logs are disabled here
            pass
    """
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """
    Keep settings independent of the developer's environment.

    Runs every test from an empty directory (no .env) and with the
    project .env ignored.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("QUERYGPT_ENV_SOURCE", "environment")
    for name in (
        "CHAT_SERVICE_BASE_URL",
        "SCHEMA_CSV_PATH",
        "SCHEMA_TABLE_DESCRIPTIONS_PATH",
        "SCHEMA_COLUMN_DESCRIPTIONS_PATH",
        "SCHEMA_RELATIONSHIPS_PATH",
        "SCHEMA_COLUMN_MAPPINGS_PATH",
        "DEFAULT_TENANT",
        "ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Schema Fixtures
# ============================================================================


@pytest.fixture
def schema_context() -> SchemaContext:
    """Small SalesCode-like schema with relationships and join hints."""
    return SchemaContext(
        table_descriptions={
            "ck_user": "Application users with role and status",
            "ck_outlet_details": "Outlet info",
            "ck_order": "Order records",
            "ck_sku_details": "Product master",
        },
        column_descriptions={
            "ck_user": {
                "role": {"description": "User role", "example": "salesman"},
                "status": "Account status",
            },
        },
        tables=[
            TableSchema(
                name="ck_user",
                fields=[
                    TableField(name="status", type="varchar", is_nullable=False),
                    TableField(name="role", type="varchar"),
                    TableField(name="last_login", type="datetime"),
                    TableField(name="id", type="int", is_primary=True, is_nullable=False),
                ],
            ),
            TableSchema(
                name="ck_order",
                fields=[
                    TableField(name="outletcode", type="varchar"),
                    TableField(name="orderid", type="varchar", is_primary=True),
                    TableField(name="orderdate", type="date"),
                ],
            ),
            TableSchema(
                name="ck_outlet_details",
                fields=[
                    TableField(name="outletname", type="varchar"),
                    TableField(name="outletcode", type="varchar", is_primary=True),
                ],
            ),
        ],
        relationships=[
            Relationship(
                from_table="ck_order",
                from_column="outletcode",
                to_table="ck_outlet_details",
                to_column="outletcode",
                description="order placed at outlet",
            ),
            Relationship(
                from_table="ck_order",
                from_column="loginid",
                to_table="ck_user",
                to_column="loginid",
            ),
        ],
        column_mappings=[
            ColumnToTableMapping(
                from_columns=frozenset({"loginid", "salesman"}),
                to_table="ck_user",
                to_column="loginid",
            ),
        ],
    )


@pytest.fixture
def schema_store(schema_context) -> SchemaContextStore:
    return SchemaContextStore.from_context(schema_context)


# ============================================================================
# Chat Service Fixtures
# ============================================================================


@pytest.fixture
def mock_chat_client():
    """
    ChatServiceClient double.

    ``send`` returns an empty reply by default; set ``side_effect`` or
    ``return_value`` per test.
    """
    client = Mock(spec=ChatServiceClient)
    client.send = AsyncMock(return_value=ChatReply(reply=""))
    client.end_session = AsyncMock(return_value=None)
    client.aclose = AsyncMock(return_value=None)
    return client


def query_reply(
    sql: str = "SELECT role, COUNT(*) FROM ck_user GROUP BY role",
    explanation: str = "Counts users per role.",
    indexes: str = "None",
    session_id: str | None = "sess-1",
) -> ChatReply:
    """Chat reply following the labelled output format."""
    text = f"sql query: {sql}\nexplanation: {explanation}\nsuggested indexes: {indexes}"
    return ChatReply(reply=text, session_id=session_id)


@pytest.fixture
def make_query_reply():
    return query_reply
