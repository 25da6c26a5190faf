"""Shared pytest fixtures for fluentQL unit and integration tests."""
from __future__ import annotations

import pytest

from fluentql.config import ConnectionConfig
from fluentql.connection import Connection
from fluentql.query.builder import QueryBuilder
from tests.fixtures import RecordingDriver


@pytest.fixture()
def driver() -> RecordingDriver:
    return RecordingDriver()


@pytest.fixture()
def connection(driver: RecordingDriver) -> Connection:
    """MySQL connection without identifier quoting or table prefix."""
    return Connection(driver, ConnectionConfig(dialect="mysql"))


@pytest.fixture()
def builder(connection: Connection) -> QueryBuilder:
    return connection.create_query_builder()
