"""fluentQL – a fluent SQL query builder.

Describe a query with chained calls; fluentQL compiles it into
parameterized SQL with ``?`` placeholders and an ordered binding list,
then runs it through a driver.

Public API
----------
``Connection`` / ``ConnectionConfig``
    Bind a driver to a dialect adapter, hooks and settings.

``QueryBuilder``
    The fluent statement accumulator; create one with
    ``connection.create_query_builder()``.

``DB``
    Static shortcuts over a process-wide default connection.

Extensibility
-------------
New dialects can be registered via::

    from fluentql.compile.registry import AdapterFactory

    @AdapterFactory.register("mariadb")
    class MariaDBAdapter(MySQLAdapter):
        ...

After registration, ``ConnectionConfig(dialect="mariadb")`` picks it up.
"""

from __future__ import annotations

from fluentql.compile import (
    Adapter,
    AdapterFactory,
    MySQLAdapter,
    PostgresAdapter,
    SQLiteAdapter,
)
from fluentql.config import ConnectionConfig
from fluentql.connection import Connection
from fluentql.db import DB
from fluentql.drivers import DBAPIDriver, Driver, SQLiteDriver, translate_placeholders
from fluentql.errors import (
    ColumnDefinitionError,
    ColumnNotFoundError,
    CompilationError,
    ConfigurationError,
    DriverError,
    EmptyDataError,
    FluentQLError,
    QueryBuilderError,
    SchemaError,
    TransactionError,
    ValidationError,
)
from fluentql.events import FILTER_TABLE_PREFIX, HookDispatcher, QueryEvent
from fluentql.query.builder import QueryBuilder
from fluentql.query.column import Column
from fluentql.query.compiled import CompiledQuery
from fluentql.query.criteria import JoinBuilder, NestedCriteria
from fluentql.query.raw import Raw
from fluentql.query.statements import Operation, OutputType, Statements
from fluentql.query.table import Table
from fluentql.query.transaction import Transaction

__all__ = [
    # Entry points
    "Connection",
    "ConnectionConfig",
    "DB",
    "QueryBuilder",
    # Query model
    "Raw",
    "Statements",
    "Operation",
    "OutputType",
    "CompiledQuery",
    "NestedCriteria",
    "JoinBuilder",
    "Transaction",
    # DDL
    "Column",
    "Table",
    # Compilation
    "Adapter",
    "AdapterFactory",
    "MySQLAdapter",
    "PostgresAdapter",
    "SQLiteAdapter",
    # Drivers
    "Driver",
    "DBAPIDriver",
    "SQLiteDriver",
    "translate_placeholders",
    # Hooks
    "HookDispatcher",
    "QueryEvent",
    "FILTER_TABLE_PREFIX",
    # Errors
    "FluentQLError",
    "ConfigurationError",
    "ValidationError",
    "EmptyDataError",
    "ColumnNotFoundError",
    "ColumnDefinitionError",
    "SchemaError",
    "CompilationError",
    "DriverError",
    "QueryBuilderError",
    "TransactionError",
]
