"""``DB``: static shortcuts over a process-wide default connection.

The default connection lives here and only here; everything below this
module receives its :class:`~fluentql.connection.Connection` explicitly.

Example::

    from fluentql import DB, ConnectionConfig, SQLiteDriver

    DB.connect(SQLiteDriver("app.db"), ConnectionConfig(dialect="sqlite"))
    titles = DB.table("posts").where("status", "publish").pluck("title")
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, ClassVar

from fluentql.config import ConnectionConfig
from fluentql.connection import Connection
from fluentql.drivers.base import Driver
from fluentql.errors import ConfigurationError
from fluentql.events import HookDispatcher
from fluentql.query.builder import QueryBuilder
from fluentql.query.column import Column
from fluentql.query.raw import Raw
from fluentql.query.table import Table
from fluentql.query.transaction import Transaction


class DB:
    """Static façade; call :meth:`connect` once before anything else."""

    _connection: ClassVar[Connection | None] = None

    @classmethod
    def connect(
        cls,
        driver: Driver,
        config: ConnectionConfig | None = None,
        hooks: HookDispatcher | None = None,
    ) -> Connection:
        """Create the default connection and return it."""
        cls._connection = Connection(driver, config, hooks)
        return cls._connection

    @classmethod
    def set_connection(cls, connection: Connection | None) -> None:
        cls._connection = connection

    @classmethod
    def connection(cls) -> Connection:
        if cls._connection is None:
            raise ConfigurationError("No database connection found.")
        return cls._connection

    @classmethod
    def disconnect(cls) -> None:
        if cls._connection is not None:
            cls._connection.close()
        cls._connection = None

    @classmethod
    def table(cls, *tables: Any, prefix: str | bool = False) -> QueryBuilder:
        """Start a query on ``tables``; ``prefix`` is applied to the connection."""
        connection = cls.connection().set_table_prefix(prefix)
        return connection.create_query_builder().from_(*tables)

    @classmethod
    def select(cls, *columns: Any) -> QueryBuilder:
        return cls.connection().create_query_builder().select(*columns)

    @staticmethod
    def raw(sql: str, *bindings: Any) -> Raw:
        return QueryBuilder.raw(sql, *bindings)

    @classmethod
    def query(cls, sql: str, bindings: Sequence[Any] = ()) -> QueryBuilder:
        return cls.connection().create_query_builder().query(sql, bindings)

    @classmethod
    def transaction(cls, callback: Callable[[Transaction], Any]) -> Transaction:
        return cls.connection().create_query_builder().transaction(callback)

    @classmethod
    def create_table(cls, name: str, columns: Sequence[Column | str], prefix: bool = True) -> bool:
        return Table(cls.connection()).create(name, columns, prefix)

    @classmethod
    def maybe_create_table(
        cls,
        name: str,
        columns: Sequence[Column | str],
        prefix: bool = True,
    ) -> bool:
        return Table(cls.connection()).create_if_not_exists(name, columns, prefix)

    @classmethod
    def table_exists(cls, name: str) -> bool:
        return Table(cls.connection()).exists(name)
