"""``CREATE TABLE`` helper driven by :class:`~fluentql.query.column.Column` lists."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from fluentql.errors import SchemaError
from fluentql.query.column import Column

if TYPE_CHECKING:
    from fluentql.connection import Connection

logger = logging.getLogger(__name__)


class Table:
    """Creates and probes tables through a connection's driver.

    Example::

        Table(connection).create_if_not_exists("logs", [
            Column("id", "integer").as_primary_key().with_auto_increment(),
            Column("message", "varchar", 255),
            Column("level", "varchar", 16).as_index(),
        ])
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def create(self, name: str, columns: Sequence[Column | str], prefix: bool = True) -> bool:
        """Run ``CREATE TABLE`` and return whether the table now exists.

        Raises:
            SchemaError: If ``columns`` is empty.
            DriverError: If the database rejects the statement.
        """
        return self._create(name, columns, prefix, if_not_exists=False)

    def create_if_not_exists(
        self,
        name: str,
        columns: Sequence[Column | str],
        prefix: bool = True,
    ) -> bool:
        return self._create(name, columns, prefix, if_not_exists=True)

    def exists(self, name: str) -> bool:
        sql, bindings = self._connection.adapter.table_exists_query(name)
        return self._connection.driver.fetch_row(sql, bindings) is not None

    def _table_name(self, name: str, prefix: bool) -> str:
        if not prefix:
            return name
        return self._connection.driver.get_prefix() + name

    def _create(
        self,
        name: str,
        columns: Sequence[Column | str],
        prefix: bool,
        if_not_exists: bool,
    ) -> bool:
        name = self._table_name(name, prefix)
        if not columns:
            raise SchemaError(
                f'Failed to create table "{name}" Table must contain at least 1 column.',
                table=name,
            )

        adapter = self._connection.adapter
        definitions, indexes = self.build_columns(name, columns, if_not_exists)
        guard = "IF NOT EXISTS " if if_not_exists else ""
        statements = [
            f"CREATE TABLE {guard}{adapter.quote_identifier(name)} ({definitions})",
            *indexes,
        ]

        driver = self._connection.driver
        for sql in statements:
            logger.info("Creating table %s: %s", name, sql)
            driver.execute(sql)
        return self.exists(name)

    def build_columns(
        self,
        table: str,
        columns: Sequence[Column | str],
        if_not_exists: bool = False,
    ) -> tuple[str, list[str]]:
        """Render the column list and any separate ``CREATE INDEX`` statements.

        Returns:
            ``(definitions, index_statements)``.
        """
        adapter = self._connection.adapter
        quote = adapter.quote_identifier
        inline_primary = "PRIMARY KEY" in adapter.auto_increment_clause()

        definitions: list[str] = []
        primary: list[str] = []
        unique: list[str] = []
        indexed: list[str] = []

        for column in columns:
            if isinstance(column, str):
                definitions.append(column)
                continue
            definitions.append(column.to_sql(adapter))
            if column.primary_key:
                if not (inline_primary and column.auto_increment):
                    primary.append(quote(column.name))
                continue
            if column.unique:
                unique.append(column.name)
            if column.index:
                indexed.append(column.name)

        if primary:
            definitions.append(f"PRIMARY KEY ({', '.join(primary)})")
        definitions.extend(f"UNIQUE ({quote(column)})" for column in unique)

        index_statements: list[str] = []
        if adapter.inline_indexes:
            definitions.extend(f"INDEX ({quote(column)})" for column in indexed)
        else:
            guard = "IF NOT EXISTS " if if_not_exists else ""
            for column in indexed:
                index_name = quote(f"{table}_{column}_index")
                index_statements.append(
                    f"CREATE INDEX {guard}{index_name} ON {quote(table)} ({quote(column)})"
                )

        return ", ".join(definitions), index_statements
