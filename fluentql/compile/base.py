"""Adapter abstraction: compiles a ``Statements`` snapshot to SQL.

The Template Method pattern (GoF) is used:
- ``Adapter`` defines the algorithm skeleton for compiling each statement
  kind (SELECT, INSERT, UPDATE, DELETE, criteria only).
- ``MySQLAdapter``, ``SQLiteAdapter`` and ``PostgresAdapter`` override the
  dialect-specific steps (identifier quoting, INSERT verbs, upsert syntax).

Adapters never execute SQL. Every compile call is a pure function of the
snapshot it receives and returns ``(sql, bindings)`` where the bindings are
ordered to match the ``?`` placeholders left to right.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from fluentql.errors import CompilationError, EmptyDataError
from fluentql.query.compiled import CompiledQuery
from fluentql.query.raw import Raw
from fluentql.query.statements import (
    Aliased,
    Condition,
    NestedGroup,
    Operation,
    Statements,
)

logger = logging.getLogger(__name__)

#: ``(sql, bindings)`` pair returned by every compile step.
Fragment = tuple[str, list[Any]]

_BETWEEN_OPERATORS = frozenset({"BETWEEN", "NOT BETWEEN"})
# an empty set matches no row for IN and every row for NOT IN
_EMPTY_SET_PREDICATES = {"IN": "0 = 1", "NOT IN": "1 = 1"}


def _concatenate(pieces: Sequence[str]) -> str:
    """Join non-empty SQL pieces with single spaces."""
    return " ".join(piece.strip() for piece in pieces if piece and piece.strip())


def normalize_value(value: Any) -> Any:
    """Convert a bound value to something a DB-API driver accepts.

    Enum members are replaced by their ``value``; objects that define their
    own ``__str__`` are stringified. Scalars pass through unchanged.
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(
        value, (str, int, float, bool, bytes, Decimal, date, datetime, time)
    ):
        return value
    if type(value).__str__ is not object.__str__:
        return str(value)
    return value


class Adapter(ABC):
    """Abstract base for dialect-specific statement compilers.

    Args:
        quote_identifiers: When ``True`` identifiers are wrapped in the
            dialect's quote character; otherwise they are emitted verbatim.
    """

    def __init__(self, quote_identifiers: bool = False) -> None:
        self.quote_identifiers = quote_identifiers
        self._handlers: dict[Operation, Callable[..., Fragment]] = {
            Operation.SELECT: self.select,
            Operation.INSERT: self.insert,
            Operation.INSERT_IGNORE: self.insert_ignore,
            Operation.REPLACE: self.replace,
            Operation.UPDATE: self.update,
            Operation.DELETE: self.delete,
            Operation.CRITERIA_ONLY: self.criteria_only,
        }

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the canonical dialect name (e.g. ``'mysql'``)."""

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Return a properly-quoted SQL identifier.

        Args:
            name: Unquoted identifier (table or column name).

        Returns:
            Quoted identifier.
        """

    def insert_verb(self, operation: Operation) -> str:
        """Return the leading keywords of an INSERT-family statement."""
        verbs = {
            Operation.INSERT: "INSERT",
            Operation.INSERT_IGNORE: "INSERT IGNORE",
            Operation.REPLACE: "REPLACE",
        }
        return verbs[operation]

    def insert_suffix(self, operation: Operation) -> str:
        """Return trailing keywords appended after ``VALUES (...)``."""
        return ""

    def on_duplicate_clause(self, assignments: str) -> str:
        """Render the upsert clause for an INSERT with on-duplicate data."""
        return f"ON DUPLICATE KEY UPDATE {assignments}"

    def union_member(self, sql: str, statements: Statements) -> str:
        """Render one SELECT of a UNION chain compiled from ``statements``."""
        return f"({sql})"

    def union_operator(self, union_type: str) -> str:
        """Return the set operator joining two UNION members."""
        return f"UNION {union_type}" if union_type else "UNION"

    def date_part(self, part: str, column_sql: str) -> str:
        """Render a date/time extraction such as ``YEAR(created_at)``.

        Args:
            part: ``DATE``, ``TIME``, ``YEAR``, ``MONTH`` or ``DAY``.
            column_sql: The already-wrapped column expression.
        """
        return f"{part.upper()}({column_sql})"

    def cast_date(self, expr: str) -> str:
        """Render ``expr`` converted to a DATE value."""
        return f"CAST({expr} AS DATE)"

    def table_exists_query(self, table: str) -> Fragment:
        """Return a query yielding a row when ``table`` exists."""
        return "SHOW TABLES LIKE ?", [table]

    def auto_increment_clause(self) -> str:
        """Keyword appended to an auto-increment column definition."""
        return "AUTO_INCREMENT"

    @property
    def inline_indexes(self) -> bool:
        """Whether ``INDEX (...)`` may appear inside ``CREATE TABLE``."""
        return True

    def quote_literal(self, value: Any) -> str:
        """Render ``value`` as an SQL literal for debug interpolation."""
        value = normalize_value(value)
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return f"{value:f}"
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        text = str(value).replace("'", "''")
        return f"'{text}'"

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def compile(
        self,
        operation: Operation | str,
        statements: Statements,
        *args: Any,
    ) -> CompiledQuery:
        """Compile ``statements`` as ``operation``.

        Args:
            operation: Statement kind, as :class:`Operation` or its name.
            statements: The snapshot to compile; never mutated.
            *args: Extra payload (row data for INSERT/UPDATE, column list
                for DELETE).

        Returns:
            A :class:`CompiledQuery` with ``?`` placeholders.

        Raises:
            ConfigurationError: If ``operation`` is not a known kind.
            CompilationError: If the dialect cannot express the statement.
            EmptyDataError: If an UPDATE or upsert has no assignments.
        """
        kind = Operation.parse(operation)
        sql, bindings = self._handlers[kind](statements, *args)
        logger.debug("Compiled %s for %s: %s", kind.value, self.dialect_name, sql)
        return CompiledQuery(sql=sql, bindings=tuple(bindings), adapter=self)

    # ------------------------------------------------------------------
    # Identifier helpers
    # ------------------------------------------------------------------

    def wrap(self, value: str | Raw) -> str:
        """Quote an identifier, handling ``table.column``, ``x as y`` and ``*``."""
        if isinstance(value, Raw):
            return str(value)
        parts = str(value).split(".", 1)
        wrapped = []
        for part in parts:
            if " as " in part:
                column, alias = part.split(" as ", 1)
                wrapped.append(f"{self.wrap(column)} AS {self.wrap(alias)}")
            elif part.strip() == "*":
                wrapped.append(part)
            elif self.quote_identifiers:
                wrapped.append(self.quote_identifier(part))
            else:
                wrapped.append(part)
        return ".".join(wrapped)

    def _column_list(self, items: Sequence[Any], bindings: list[Any]) -> str:
        rendered = []
        for item in items:
            if isinstance(item, Aliased):
                expr = item.expr
                if isinstance(expr, Raw):
                    bindings.extend(expr.bindings)
                    head = str(expr)
                elif ")" in expr:
                    head = expr
                else:
                    head = self.wrap(expr)
                rendered.append(f"{head} AS {self.wrap(item.alias)}")
            elif isinstance(item, Raw):
                bindings.extend(item.bindings)
                rendered.append(str(item))
            else:
                rendered.append(self.wrap(item))
        return ", ".join(rendered)

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def build_criteria(
        self,
        conditions: Sequence[Condition],
        bind_values: bool = True,
        alias: str | None = None,
    ) -> Fragment:
        """Compile a condition list to ``(sql, bindings)``.

        Args:
            conditions: Entries in insertion order.
            bind_values: ``False`` for join ON criteria, where the right-hand
                side is an identifier rather than a bound value.
            alias: Table alias used to qualify bare column keys.
        """
        criteria: list[str] = []
        bindings: list[Any] = []

        for index, entry in enumerate(conditions):
            if index == 0 and entry.condition:
                criteria.append(entry.condition)

            joiner = entry.joiner
            if index == 0:
                joiner = " ".join(
                    word for word in joiner.split() if word.upper() not in ("AND", "OR")
                )
            if joiner:
                criteria.append(joiner)

            if entry.columns:
                columns = ", ".join(self.wrap(column) for column in entry.columns)
                criteria.append(f"({columns})")
                continue

            key = entry.key
            value = entry.value

            if isinstance(key, NestedGroup):
                nested_sql, nested_bindings = self.build_criteria(key.conditions)
                criteria.append(f"({nested_sql})")
                bindings.extend(nested_bindings)
                continue

            empty_set = _EMPTY_SET_PREDICATES.get((entry.operator or "").upper())
            if empty_set and isinstance(value, (list, tuple)) and not value:
                criteria.append(empty_set)
                continue

            if isinstance(key, Raw):
                key_sql = str(key)
                bindings.extend(key.bindings)
            else:
                key_sql = self.wrap(key)
                if alias and "." not in key_sql:
                    key_sql = f"{self.wrap(alias)}.{key_sql}"

            if isinstance(value, (list, tuple)):
                criteria.append(f"{key_sql} {entry.operator}")
                if entry.operator in _BETWEEN_OPERATORS:
                    criteria.append("? AND ?")
                    bindings.extend(normalize_value(item) for item in value[:2])
                    continue
                placeholders = ", ".join("?" for _ in value)
                criteria.append(f"({placeholders})")
                bindings.extend(normalize_value(item) for item in value)
                continue

            if isinstance(value, Raw):
                criteria.append(f"{key_sql} {entry.operator} {value}")
                bindings.extend(value.bindings)
                continue

            if not bind_values:
                criteria.append(f"{key_sql} {entry.operator} {self.wrap(value)}")
                continue

            if isinstance(key, Raw) and entry.operator is None:
                criteria.append(key_sql)
                continue

            criteria.append(f"{key_sql} {entry.operator} ?")
            bindings.append(normalize_value(value))

        return " ".join(criteria), bindings

    def _criteria_with_type(
        self,
        conditions: Sequence[Condition] | None,
        keyword: str,
        alias: str | None = None,
    ) -> Fragment:
        if not conditions:
            return "", []
        sql, bindings = self.build_criteria(conditions, alias=alias)
        return f"{keyword} {sql}", bindings

    # ------------------------------------------------------------------
    # Clause builders
    # ------------------------------------------------------------------

    def _aliased_table(self, table: str, statements: Statements) -> tuple[str, str | None]:
        alias = (statements.aliases or {}).get(table)
        if alias is None:
            return self.wrap(table), None
        alias = alias.lower()
        return f"{self.wrap(table)} AS {self.wrap(alias)}", alias

    def _joins(self, statements: Statements, bindings: list[Any]) -> str:
        pieces: list[str] = []
        for join in statements.joins or []:
            if isinstance(join.table, tuple):
                main, alias = join.table
                table = f"{self.wrap(main)} AS {self.wrap(alias)}"
            elif isinstance(join.table, Raw):
                table = str(join.table)
                bindings.extend(join.table.bindings)
            else:
                table = self.wrap(join.table)

            criteria_sql = ""
            if join.criteria:
                criteria_sql, criteria_bindings = self.build_criteria(
                    join.criteria, bind_values=False
                )
                bindings.extend(criteria_bindings)

            pieces.append(_concatenate([join.type.upper(), "JOIN", table, criteria_sql]))
        return " ".join(pieces)

    def _group_by(self, statements: Statements, bindings: list[Any]) -> str:
        if not statements.group_bys:
            return ""
        return "GROUP BY " + self._column_list(statements.group_bys, bindings)

    def _order_by(self, statements: Statements, bindings: list[Any]) -> str:
        if not statements.order_bys:
            return ""
        rendered = []
        for entry in statements.order_bys:
            if isinstance(entry.field, Raw):
                bindings.extend(entry.field.bindings)
            rendered.append(f"{self.wrap(entry.field)} {entry.direction}")
        return "ORDER BY " + ", ".join(rendered)

    @staticmethod
    def _limit(statements: Statements) -> str:
        return f"LIMIT {statements.limit}" if statements.limit is not None else ""

    @staticmethod
    def _offset(statements: Statements) -> str:
        return f"OFFSET {statements.offset}" if statements.offset is not None else ""

    @staticmethod
    def _lock(statements: Statements) -> str:
        return f"FOR {statements.lock}" if statements.lock else ""

    def _target_table(self, statements: Statements, clause: str) -> str:
        if not statements.tables:
            raise CompilationError(f"No table selected for {clause}.", clause=clause)
        table = statements.tables[-1]
        if isinstance(table, Raw):
            return str(table)
        return table

    def _assignments(self, data: Mapping[str, Any]) -> Fragment:
        pieces: list[str] = []
        bindings: list[Any] = []
        for key, value in data.items():
            if isinstance(value, Raw):
                pieces.append(f"{self.wrap(key)} = {value}")
                bindings.extend(value.bindings)
            else:
                pieces.append(f"{self.wrap(key)} = ?")
                bindings.append(normalize_value(value))
        return ", ".join(pieces), bindings

    # ------------------------------------------------------------------
    # Statement kinds
    # ------------------------------------------------------------------

    def select(self, statements: Statements) -> Fragment:
        bindings: list[Any] = []

        items = list(statements.selects or [])
        distinct = bool(statements.distincts)
        if distinct:
            items = list(statements.distincts or []) + items
        if not items:
            items = ["*"]
        columns = self._column_list(items, bindings)

        tables_sql = ""
        alias: str | None = None
        if statements.tables:
            rendered = []
            for table in statements.tables:
                if isinstance(table, Raw):
                    rendered.append(str(table))
                    bindings.extend(table.bindings)
                    alias = None
                else:
                    table_sql, alias = self._aliased_table(table, statements)
                    rendered.append(table_sql)
            tables_sql = ",".join(rendered)

        joins = self._joins(statements, bindings)

        where_sql, where_bindings = self._criteria_with_type(statements.wheres, "WHERE", alias)
        bindings.extend(where_bindings)

        group_by = self._group_by(statements, bindings)

        having_sql, having_bindings = self._criteria_with_type(statements.havings, "HAVING", alias)
        bindings.extend(having_bindings)

        sql = _concatenate([
            "SELECT DISTINCT" if distinct else "SELECT",
            columns,
            "FROM" if tables_sql else "",
            tables_sql,
            joins,
            where_sql,
            group_by,
            having_sql,
            self._order_by(statements, bindings),
            self._limit(statements),
            self._offset(statements),
            self._lock(statements),
        ])

        if statements.unions:
            pieces = [self.union_member(sql, statements)]
            for union in statements.unions:
                member_sql, member_bindings = self.select(union.statements)
                pieces.append(self.union_operator(union.type))
                pieces.append(self.union_member(member_sql, union.statements))
                bindings.extend(member_bindings)
            sql = " ".join(pieces)

        return sql, bindings

    def _insert(
        self,
        operation: Operation,
        statements: Statements,
        data: Mapping[str, Any],
    ) -> Fragment:
        table = self._target_table(statements, "INSERT")
        if not data:
            raise EmptyDataError("INSERT")

        keys: list[str] = []
        values: list[str] = []
        bindings: list[Any] = []
        for key, value in data.items():
            keys.append(self.wrap(key))
            if isinstance(value, Raw):
                values.append(str(value))
                bindings.extend(value.bindings)
            else:
                values.append("?")
                bindings.append(normalize_value(value))

        pieces = [
            f"{self.insert_verb(operation)} INTO",
            self.wrap(table),
            f"({', '.join(keys)})",
            f"VALUES ({', '.join(values)})",
        ]

        if statements.on_duplicate is not None:
            if not statements.on_duplicate:
                raise EmptyDataError("ON DUPLICATE KEY UPDATE")
            assignments, update_bindings = self._assignments(statements.on_duplicate)
            pieces.append(self.on_duplicate_clause(assignments))
            bindings.extend(update_bindings)

        pieces.append(self.insert_suffix(operation))
        return _concatenate(pieces), bindings

    def insert(self, statements: Statements, data: Mapping[str, Any]) -> Fragment:
        return self._insert(Operation.INSERT, statements, data)

    def insert_ignore(self, statements: Statements, data: Mapping[str, Any]) -> Fragment:
        return self._insert(Operation.INSERT_IGNORE, statements, data)

    def replace(self, statements: Statements, data: Mapping[str, Any]) -> Fragment:
        return self._insert(Operation.REPLACE, statements, data)

    def update(self, statements: Statements, data: Mapping[str, Any]) -> Fragment:
        if not data:
            raise EmptyDataError("UPDATE")

        table = self._target_table(statements, "UPDATE")
        table_sql, alias = self._aliased_table(table, statements)

        bindings: list[Any] = []
        joins = self._joins(statements, bindings)
        assignments, assignment_bindings = self._assignments(data)
        bindings.extend(assignment_bindings)

        where_sql, where_bindings = self._criteria_with_type(statements.wheres, "WHERE", alias)
        bindings.extend(where_bindings)

        sql = _concatenate([
            "UPDATE",
            table_sql,
            joins,
            f"SET {assignments}",
            where_sql,
            self._group_by(statements, bindings),
            self._order_by(statements, bindings),
            self._limit(statements),
            self._offset(statements),
        ])
        return sql, bindings

    def delete(
        self,
        statements: Statements,
        columns: Sequence[str] | None = None,
    ) -> Fragment:
        table = self._target_table(statements, "DELETE")

        bindings: list[Any] = []
        columns_sql = self._column_list(columns, bindings) if columns else ""
        joins = self._joins(statements, bindings)

        where_sql, where_bindings = self._criteria_with_type(statements.wheres, "WHERE")
        bindings.extend(where_bindings)

        sql = _concatenate([
            "DELETE",
            columns_sql,
            "FROM",
            self.wrap(table),
            joins,
            where_sql,
            self._group_by(statements, bindings),
            self._order_by(statements, bindings),
            self._limit(statements),
            self._offset(statements),
        ])
        return sql, bindings

    def criteria_only(self, statements: Statements, bind_values: bool = True) -> Fragment:
        if not statements.criteria:
            return "", []
        return self.build_criteria(statements.criteria, bind_values=bind_values)
