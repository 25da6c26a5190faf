"""QueryBuilder: the fluent statement accumulator.

Every mutator records intent in a :class:`~fluentql.query.statements.Statements`
snapshot and returns ``self``. Terminal operations hand the snapshot to the
connection's adapter, record the compiled query as the connection's last
query, fire the before/after lifecycle hooks and run it through the driver.

Example::

    builder = connection.create_query_builder()
    rows = (
        builder.table("posts")
        .select("id", "title")
        .where("status", "publish")
        .where_in("author_id", [1, 2, 3])
        .order_by("id", "DESC")
        .limit(10)
        .get()
    )
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from fluentql import events
from fluentql.drivers.base import check_binding
from fluentql.errors import (
    ColumnNotFoundError,
    ConfigurationError,
    DriverError,
    TransactionError,
    ValidationError,
)
from fluentql.query.compiled import CompiledQuery
from fluentql.query.raw import Raw
from fluentql.query.statements import (
    Aliased,
    Condition,
    JoinEntry,
    NestedGroup,
    Operation,
    OrderByEntry,
    OutputType,
    Statements,
    UnionEntry,
)

if TYPE_CHECKING:
    from fluentql.compile.base import Adapter
    from fluentql.connection import Connection
    from fluentql.drivers.base import Driver
    from fluentql.query.transaction import Transaction

logger = logging.getLogger(__name__)

UNION_TYPE_NONE = ""
UNION_TYPE_DISTINCT = "DISTINCT"
UNION_TYPE_ALL = "ALL"

_UNION_TYPES = frozenset({UNION_TYPE_NONE, UNION_TYPE_DISTINCT, UNION_TYPE_ALL})

# Distinguishes where("a", None) from where("a")
_UNSET: Any = object()


def _is_callback(value: Any) -> bool:
    return callable(value) and not isinstance(value, (str, Raw, QueryBuilder))


class QueryBuilder:
    """Accumulates a query through chained calls and executes it.

    Args:
        connection: The connection providing the adapter, driver, hooks and
            table prefix.

    Raises:
        ConfigurationError: If ``connection`` is ``None``.
    """

    #: Statement field that receives where-style conditions.
    _condition_field = "wheres"

    def __init__(self, connection: Connection | None, statements: Statements | None = None) -> None:
        if connection is None:
            raise ConfigurationError("No database connection found.")
        self._connection: Connection | None = connection
        self._statements = statements if statements is not None else Statements()
        self._overwrite_enabled = False

    # ------------------------------------------------------------------
    # Connection access
    # ------------------------------------------------------------------

    def get_connection(self) -> Connection:
        if self._connection is None:
            raise ConfigurationError("No database connection found.")
        return self._connection

    def set_connection(self, connection: Connection) -> QueryBuilder:
        self._connection = connection
        return self

    @property
    def adapter(self) -> Adapter:
        return self.get_connection().adapter

    @property
    def driver(self) -> Driver:
        return self.get_connection().driver

    def close(self) -> None:
        """Detach the builder from its connection."""
        self._connection = None

    def new_query(self) -> QueryBuilder:
        """Return an empty builder on the same connection."""
        return QueryBuilder(self.get_connection())

    def get_statements(self) -> Statements:
        return self._statements

    def set_statements(self, statements: Statements) -> QueryBuilder:
        self._statements = statements
        return self

    def is_overwrite_enabled(self) -> bool:
        return self._overwrite_enabled

    def set_overwrite_enabled(self, enabled: bool = True) -> QueryBuilder:
        """In overwrite mode repeated clauses replace earlier ones."""
        self._overwrite_enabled = enabled
        return self

    def get_last_query(self) -> CompiledQuery | None:
        return self.get_connection().last_query

    # ------------------------------------------------------------------
    # Raw fragments and sub-queries
    # ------------------------------------------------------------------

    @staticmethod
    def raw(sql: str, *bindings: Any) -> Raw:
        """Build a :class:`Raw` from ``raw(sql, a, b)`` or ``raw(sql, [a, b])``."""
        if len(bindings) == 1 and isinstance(bindings[0], (list, tuple)):
            return Raw(sql, bindings[0])
        return Raw(sql, bindings)

    def sub_query(self, builder: QueryBuilder, alias: str | None = None) -> Raw:
        """Wrap ``builder``'s SELECT as ``(sql) AS alias`` with its bindings."""
        compiled = builder.get_query()
        sql = f"({compiled.sql})"
        if alias:
            sql = f"{sql} AS {alias}"
        return Raw(sql, compiled.bindings)

    # ------------------------------------------------------------------
    # Table prefix
    # ------------------------------------------------------------------

    def _table_prefix(self) -> str | None:
        connection = self.get_connection()
        if not connection.table_prefix:
            return None
        return connection.hooks.apply_filters(
            events.FILTER_TABLE_PREFIX, connection.table_prefix
        )

    def add_table_prefix(self, values: Any, table_field_mix: bool = True) -> Any:
        """Prefix table names in ``values`` with the connection's table prefix.

        With ``table_field_mix`` the values are column references and only
        ``table.column`` forms are prefixed. Raw fragments, callbacks and
        nested groups pass through. For mappings the keys are prefixed.
        """
        prefix = self._table_prefix()
        if not prefix:
            return values

        def _apply(value: Any) -> Any:
            if not isinstance(value, str):
                return value
            if table_field_mix and "." not in value:
                return value
            return prefix + value

        if isinstance(values, Mapping):
            return {_apply(key): value for key, value in values.items()}
        if isinstance(values, (list, tuple)):
            return [_apply(value) for value in values]
        return _apply(values)

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def get_query(self, operation: Operation | str = Operation.SELECT, *args: Any) -> CompiledQuery:
        """Compile the current statements as ``operation`` without running them.

        Raises:
            ConfigurationError: If ``operation`` is not a known statement kind.
        """
        return self.adapter.compile(operation, self._statements, *args)

    def statement(self, sql: str, bindings: Sequence[Any] = ()) -> str:
        """Return ``sql`` with ``bindings`` inlined by the driver, for display."""
        return self.driver.prepare(sql, [check_binding(value) for value in bindings])

    # ------------------------------------------------------------------
    # Tables and columns
    # ------------------------------------------------------------------

    def table(self, *tables: Any) -> QueryBuilder:
        """Start a new builder on the same connection selecting from ``tables``.

        ``table()`` / ``table(None)`` clear the tables of this builder instead.
        """
        if not tables or tables == (None,):
            return self.from_()
        return self.new_query().from_(*tables)

    def from_(self, *tables: Any) -> QueryBuilder:
        """Set the FROM tables of this builder; a mapping declares aliases."""
        if not tables or tables == (None,):
            self._statements.tables = None
            return self

        collected: list[str | Raw] = []
        for item in tables:
            if isinstance(item, Mapping):
                for table, alias in item.items():
                    table = self.add_table_prefix(table, False)
                    collected.append(table)
                    self._set_alias(alias, table)
            elif isinstance(item, (list, tuple)):
                collected.extend(self.add_table_prefix(list(item), False))
            else:
                collected.append(self.add_table_prefix(item, False))

        if self._statements.tables is None:
            self._statements.tables = []
        self._statements.tables.extend(collected)
        return self

    def _set_alias(self, alias: str, table: str) -> None:
        if self._statements.aliases is None:
            self._statements.aliases = {}
        self._statements.aliases[table] = alias.lower()

    def alias(self, alias: str, table: str | None = None) -> QueryBuilder:
        """Alias ``table`` (default: the first table) as ``alias``."""
        if table is None:
            if not self._statements.tables:
                raise ValidationError("No table selected", code="NO_TABLE")
            table = self._statements.tables[0]
        else:
            table = self.add_table_prefix(table, False)
        self._set_alias(alias, table)
        return self

    def get_table(self) -> str | None:
        tables = self._statements.tables
        if not tables or isinstance(tables[0], Raw):
            return None
        return tables[0]

    def get_alias(self) -> str | None:
        table = self.get_table()
        if table is None or not self._statements.aliases:
            return None
        return self._statements.aliases.get(table)

    def _collect_selects(self, fields: Iterable[Any]) -> list[Any]:
        collected: list[Any] = []
        for field in fields:
            if isinstance(field, Mapping):
                for expr, alias in field.items():
                    collected.append(Aliased(self.add_table_prefix(expr), alias))
            elif isinstance(field, (list, tuple)):
                collected.extend(self._collect_selects(field))
            else:
                collected.append(self.add_table_prefix(field))
        return collected

    def select(self, *fields: Any) -> QueryBuilder:
        """Add columns to the SELECT list.

        Accepts column names, :class:`Raw` fragments, lists, and mappings of
        ``{expression: alias}``.
        """
        collected = self._collect_selects(fields)
        if self._overwrite_enabled or self._statements.selects is None:
            self._statements.selects = collected
        else:
            self._statements.selects.extend(collected)
        return self

    def select_raw(self, sql: str, bindings: Sequence[Any] = ()) -> QueryBuilder:
        return self.select(Raw(sql, bindings))

    def select_distinct(self, *fields: Any) -> QueryBuilder:
        collected = self._collect_selects(fields)
        if self._overwrite_enabled or self._statements.distincts is None:
            self._statements.distincts = collected
        else:
            self._statements.distincts.extend(collected)
        return self

    def get_columns(self) -> dict[str, str]:
        """Map output column names to the select expression producing them."""
        columns: dict[str, str] = {}
        for item in self._statements.selects or []:
            if isinstance(item, Aliased):
                if isinstance(item.expr, str):
                    columns[item.alias] = item.expr
                continue
            if not isinstance(item, str):
                continue
            parts = item.split(".")
            if "*" in parts:
                continue
            columns[parts[1] if len(parts) > 1 else parts[0]] = item
        return columns

    # ------------------------------------------------------------------
    # Overwrite support
    # ------------------------------------------------------------------

    def _remove_existing(self, field: str, matches: Callable[[Any], bool]) -> None:
        if not self._overwrite_enabled:
            return
        entries = getattr(self._statements, field)
        if not entries:
            return
        for index, entry in enumerate(entries):
            if matches(entry):
                del entries[index]
                return

    def _same_condition_key(self, key: Any) -> Callable[[Any], bool]:
        def matches(entry: Condition) -> bool:
            if isinstance(entry.key, NestedGroup):
                return any(sub.key == key for sub in entry.key.conditions)
            return entry.key == key

        return matches

    # ------------------------------------------------------------------
    # WHERE
    # ------------------------------------------------------------------

    def _nested_group(self, callback: Callable[..., Any]) -> NestedGroup:
        from fluentql.query.criteria import NestedCriteria

        return NestedGroup.collect(callback, NestedCriteria(self.get_connection()))

    def _condition(self, key: Any, operator: str | None, value: Any, joiner: str) -> Condition:
        if _is_callback(key) and operator is None:
            key = self._nested_group(key)
        else:
            key = self.add_table_prefix(key)
        if isinstance(value, QueryBuilder):
            value = self.sub_query(value)
        return Condition(key=key, operator=operator, value=value, joiner=joiner)

    def _add_condition(self, field: str, condition: Condition) -> QueryBuilder:
        self._remove_existing(field, self._same_condition_key(condition.key))
        entries = getattr(self._statements, field)
        if entries is None:
            entries = []
            setattr(self._statements, field, entries)
        entries.append(condition)
        return self

    def _where_handler(
        self,
        key: Any,
        operator: str | None = None,
        value: Any = None,
        joiner: str = "AND",
    ) -> QueryBuilder:
        return self._add_condition(
            self._condition_field, self._condition(key, operator, value, joiner)
        )

    @staticmethod
    def _operands(operator: Any, value: Any) -> tuple[str | None, Any]:
        if operator is _UNSET:
            return None, None
        if value is _UNSET:
            operator, value = "=", operator
        if isinstance(value, bool):
            value = int(value)
        return operator, value

    def where(self, key: Any, operator: Any = _UNSET, value: Any = _UNSET) -> QueryBuilder:
        """Add an ``AND`` condition.

        ``where("id", 1)`` means ``id = 1``; ``where("age", ">", 18)`` uses the
        given operator; ``where(callback)`` adds a parenthesised group built
        by ``callback``; ``where(Raw(...))`` adds a raw condition.
        """
        operator, value = self._operands(operator, value)
        return self._where_handler(key, operator, value)

    def and_where(self, key: Any, operator: Any = _UNSET, value: Any = _UNSET) -> QueryBuilder:
        return self.where(key, operator, value)

    def or_where(self, key: Any, operator: Any = _UNSET, value: Any = _UNSET) -> QueryBuilder:
        operator, value = self._operands(operator, value)
        return self._where_handler(key, operator, value, "OR")

    def where_not(self, key: Any, operator: Any = _UNSET, value: Any = _UNSET) -> QueryBuilder:
        operator, value = self._operands(operator, value)
        return self._where_handler(key, operator, value, "AND NOT")

    def or_where_not(self, key: Any, operator: Any = _UNSET, value: Any = _UNSET) -> QueryBuilder:
        operator, value = self._operands(operator, value)
        return self._where_handler(key, operator, value, "OR NOT")

    def where_raw(self, sql: str, bindings: Sequence[Any] = ()) -> QueryBuilder:
        return self._where_handler(Raw(sql, bindings))

    @staticmethod
    def _values(values: Any) -> Any:
        if isinstance(values, (QueryBuilder, Raw)):
            return values
        return list(values)

    def where_in(self, key: Any, values: Any) -> QueryBuilder:
        return self._where_handler(key, "IN", self._values(values))

    def where_not_in(self, key: Any, values: Any) -> QueryBuilder:
        return self._where_handler(key, "NOT IN", self._values(values))

    def or_where_in(self, key: Any, values: Any) -> QueryBuilder:
        return self._where_handler(key, "IN", self._values(values), "OR")

    def or_where_not_in(self, key: Any, values: Any) -> QueryBuilder:
        return self._where_handler(key, "NOT IN", self._values(values), "OR")

    def where_between(self, key: Any, value_from: Any, value_to: Any) -> QueryBuilder:
        return self._where_handler(key, "BETWEEN", [value_from, value_to])

    def where_not_between(self, key: Any, value_from: Any, value_to: Any) -> QueryBuilder:
        return self._where_handler(key, "NOT BETWEEN", [value_from, value_to])

    def or_where_between(self, key: Any, value_from: Any, value_to: Any) -> QueryBuilder:
        return self._where_handler(key, "BETWEEN", [value_from, value_to], "OR")

    def where_date_between(self, column: str, start: Any, end: Any) -> QueryBuilder:
        cast = self.adapter.cast_date("?")
        return self._where_handler(column, "BETWEEN", Raw(f"{cast} AND {cast}", [start, end]))

    def where_date_not_between(self, column: str, start: Any, end: Any) -> QueryBuilder:
        cast = self.adapter.cast_date("?")
        return self._where_handler(column, "NOT BETWEEN", Raw(f"{cast} AND {cast}", [start, end]))

    def _where_null(self, key: Any, negate: bool, joiner: str) -> QueryBuilder:
        operator = "IS NOT" if negate else "IS"
        return self._where_handler(key, operator, Raw("NULL"), joiner)

    def where_null(self, key: Any) -> QueryBuilder:
        return self._where_null(key, False, "AND")

    def where_not_null(self, key: Any) -> QueryBuilder:
        return self._where_null(key, True, "AND")

    def or_where_null(self, key: Any) -> QueryBuilder:
        return self._where_null(key, False, "OR")

    def or_where_not_null(self, key: Any) -> QueryBuilder:
        return self._where_null(key, True, "OR")

    def where_like(self, key: Any, value: str) -> QueryBuilder:
        return self._where_handler(key, "LIKE", value)

    def where_not_like(self, key: Any, value: str) -> QueryBuilder:
        return self._where_handler(key, "NOT LIKE", value)

    def where_starts_with(self, key: Any, value: str) -> QueryBuilder:
        return self.where_like(key, f"{value}%")

    def search(self, key: Any, value: str = "") -> QueryBuilder:
        """Match rows whose ``key`` contains ``value``."""
        return self.where_like(key, f"%{value}%")

    def where_exists(self, callback: Callable[[QueryBuilder], Any]) -> QueryBuilder:
        """Add ``EXISTS (subquery)``; ``callback`` receives an empty builder."""
        query = self.new_query()
        callback(query)
        compiled = query.get_query()
        return self._where_handler(Raw(f"EXISTS ({compiled.sql})", compiled.bindings))

    def where_column(self, first: Any, operator: Any = _UNSET, second: Any = _UNSET) -> QueryBuilder:
        """Compare two columns; also accepts a list of ``(first, op, second)``."""
        if isinstance(first, (list, tuple)):
            for columns in first:
                self.where_column(*columns)
            return self
        if second is _UNSET:
            operator, second = "=", operator
        wrap = self.adapter.wrap
        return self._where_handler(Raw(f"{wrap(first)} {operator} {wrap(second)}"))

    def _where_date_part(self, part: str, column: str, operator: Any, value: Any) -> QueryBuilder:
        if value is _UNSET:
            operator, value = "=", operator
        expr = self.adapter.date_part(part, self.adapter.wrap(column))
        return self._where_handler(Raw(f"{expr} {operator} ?", [value]))

    def where_date(self, column: str, operator: Any, value: Any = _UNSET) -> QueryBuilder:
        return self._where_date_part("DATE", column, operator, value)

    def where_year(self, column: str, operator: Any, value: Any = _UNSET) -> QueryBuilder:
        return self._where_date_part("YEAR", column, operator, value)

    def where_month(self, column: str, operator: Any, value: Any = _UNSET) -> QueryBuilder:
        return self._where_date_part("MONTH", column, operator, value)

    def where_day(self, column: str, operator: Any, value: Any = _UNSET) -> QueryBuilder:
        return self._where_date_part("DAY", column, operator, value)

    def where_time(self, column: str, operator: Any, value: Any = _UNSET) -> QueryBuilder:
        return self._where_date_part("TIME", column, operator, value)

    # ------------------------------------------------------------------
    # HAVING
    # ------------------------------------------------------------------

    def having(
        self,
        key: Any,
        operator: Any = _UNSET,
        value: Any = _UNSET,
        joiner: str = "AND",
    ) -> QueryBuilder:
        operator, value = self._operands(operator, value)
        return self._add_condition("havings", self._condition(key, operator, value, joiner))

    def or_having(self, key: Any, operator: Any = _UNSET, value: Any = _UNSET) -> QueryBuilder:
        return self.having(key, operator, value, "OR")

    def having_raw(self, sql: str, bindings: Sequence[Any] = ()) -> QueryBuilder:
        return self.having(Raw(sql, bindings))

    # ------------------------------------------------------------------
    # JOIN
    # ------------------------------------------------------------------

    def _join_table(self, table: Any) -> str | Raw | tuple[str, str]:
        if isinstance(table, (list, tuple)):
            main, alias = table
            return (self.add_table_prefix(main, False), alias)
        return self.add_table_prefix(table, False)

    def _add_join(self, join_type: str, table: Any, criteria: tuple[Condition, ...]) -> QueryBuilder:
        table = self._join_table(table)
        self._remove_existing("joins", lambda entry: entry.table == table)
        if self._statements.joins is None:
            self._statements.joins = []
        self._statements.joins.append(JoinEntry(join_type.lower(), table, criteria))
        return self

    def join(
        self,
        table: Any,
        key: Any = None,
        operator: str | None = None,
        value: Any = None,
        type: str = "",
    ) -> QueryBuilder:
        """Add a JOIN clause.

        Examples::

            .join("comments", "comments.post_id", "=", "posts.id")
            .join(("users", "u"), "u.id", "=", "posts.author_id")
            .join("meta", lambda j: j.on("meta.post_id", "=", "posts.id")
                                     .or_on("meta.key", "=", Raw("'x'")))
        """
        criteria: tuple[Condition, ...] = ()
        if key is not None:
            from fluentql.query.criteria import JoinBuilder

            join_builder = JoinBuilder(self.get_connection())
            if _is_callback(key):
                key(join_builder)
            else:
                join_builder.on(key, operator, value)
            criteria = tuple(join_builder.get_statements().criteria or ())
        return self._add_join(type, table, criteria)

    def inner_join(self, table: Any, key: Any, operator: str | None = None, value: Any = None) -> QueryBuilder:
        return self.join(table, key, operator, value, "inner")

    def left_join(self, table: Any, key: Any, operator: str | None = None, value: Any = None) -> QueryBuilder:
        return self.join(table, key, operator, value, "left")

    def right_join(self, table: Any, key: Any, operator: str | None = None, value: Any = None) -> QueryBuilder:
        return self.join(table, key, operator, value, "right")

    def cross_join(self, table: Any) -> QueryBuilder:
        return self.join(table, type="cross")

    def join_using(self, table: Any, fields: str | Sequence[str], type: str = "") -> QueryBuilder:
        from fluentql.query.criteria import JoinBuilder

        join_builder = JoinBuilder(self.get_connection()).using(fields)
        return self._add_join(type, table, tuple(join_builder.get_statements().criteria or ()))

    # ------------------------------------------------------------------
    # Ordering, grouping, paging
    # ------------------------------------------------------------------

    def order_by(self, fields: Any, direction: str = "ASC") -> QueryBuilder:
        """Add ORDER BY terms; a mapping gives ``{field: direction}``."""
        if isinstance(fields, Mapping):
            pairs = list(fields.items())
        elif isinstance(fields, (list, tuple)):
            pairs = [(field, direction) for field in fields]
        else:
            pairs = [(fields, direction)]

        for field, field_direction in pairs:
            field = self.add_table_prefix(field)
            self._remove_existing("order_bys", lambda entry, f=field: entry.field == f)
            if self._statements.order_bys is None:
                self._statements.order_bys = []
            self._statements.order_bys.append(OrderByEntry(field, str(field_direction).upper()))
        return self

    def order_by_desc(self, fields: Any) -> QueryBuilder:
        return self.order_by(fields, "DESC")

    def group_by(self, *fields: Any) -> QueryBuilder:
        if self._overwrite_enabled:
            self._statements.group_bys = []
        for field in fields:
            if isinstance(field, (list, tuple)):
                self._statements.group_bys.extend(self.add_table_prefix(list(field)))
            else:
                self._statements.group_bys.append(self.add_table_prefix(field))
        return self

    def limit(self, limit: int) -> QueryBuilder:
        self._statements.limit = int(limit)
        return self

    def take(self, limit: int) -> QueryBuilder:
        return self.limit(limit)

    def offset(self, offset: int) -> QueryBuilder:
        self._statements.offset = int(offset)
        return self

    def skip(self, offset: int) -> QueryBuilder:
        return self.offset(offset)

    def for_(self, statement: str) -> QueryBuilder:
        """Add a locking clause, e.g. ``for_("UPDATE")``."""
        self._statements.lock = statement
        return self

    def on_duplicate_key_update(self, data: Mapping[str, Any]) -> QueryBuilder:
        self._statements.on_duplicate = dict(data)
        return self

    # ------------------------------------------------------------------
    # UNION
    # ------------------------------------------------------------------

    def union(self, query: QueryBuilder, type: str = UNION_TYPE_NONE) -> QueryBuilder:
        """Append ``query`` as a UNION member.

        Unions already attached to ``query`` are moved up into this builder
        first, so chained unions always compile as a flat list. ``query`` is
        captured as it is now; later changes to it are not seen.
        """
        union_type = (type or "").upper()
        if union_type not in _UNION_TYPES:
            raise ValidationError(
                f"Unknown union type '{type}'.",
                code="INVALID_UNION",
                details={"allowed": sorted(_UNION_TYPES)},
            )
        snapshot = query.get_statements().copy()
        self._statements.unions.extend(snapshot.unions)
        snapshot.unions = []
        self._statements.unions.append(UnionEntry(snapshot, union_type))
        return self

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def fire_events(
        self,
        name: str,
        query: CompiledQuery,
        arguments: dict[str, Any] | None = None,
    ) -> None:
        hooks = self.get_connection().hooks
        if hooks.has_action(name):
            hooks.fire(name, events.QueryEvent(name, query, self, arguments or {}))

    def _run(
        self,
        before: str,
        after: str,
        query: CompiledQuery,
        call: Callable[[Driver, CompiledQuery], tuple[Any, dict[str, Any]]],
    ) -> Any:
        connection = self.get_connection()
        connection.last_query = query
        self.fire_events(before, query)

        started = time.perf_counter()
        result, arguments = call(connection.driver, query)
        execution_time = time.perf_counter() - started

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Executed in %.4fs: %s", execution_time, query.raw_sql)
        self.fire_events(after, query, {"execution_time": execution_time, **arguments})
        return result

    def _output(self, output: OutputType | str | None, allowed: Iterable[OutputType]) -> OutputType:
        if output is None:
            output = self.get_connection().config.default_output
        try:
            shape = OutputType(output)
        except ValueError:
            shape = None
        if shape is None or shape not in allowed:
            raise ValidationError(
                f"Invalid output type: {output}",
                code="INVALID_OUTPUT",
                details={"allowed": [item.value for item in allowed]},
            )
        return shape

    @staticmethod
    def _shape(row: dict[str, Any], output: OutputType) -> Any:
        if output is OutputType.ARRAY_A:
            return dict(row)
        if output is OutputType.ARRAY_N:
            return tuple(row.values())
        return SimpleNamespace(**row)

    def get(self, output: OutputType | str | None = None) -> Any:
        """Run the SELECT and return all rows.

        ``OBJECT_K`` returns a dict keyed by the first column instead of a list;
        the first row wins when keys repeat.
        """
        shape = self._output(output, tuple(OutputType))

        def call(driver: Driver, query: CompiledQuery) -> tuple[Any, dict[str, Any]]:
            return driver.fetch_all(query.sql, query.bindings), {}

        rows = self._run(events.BEFORE_SELECT, events.AFTER_SELECT, self.get_query(), call)
        if shape is OutputType.OBJECT_K:
            keyed: dict[Any, Any] = {}
            for row in rows:
                key = next(iter(row.values()), None)
                keyed.setdefault(key, SimpleNamespace(**row))
            return keyed
        return [self._shape(row, shape) for row in rows]

    def row(self, output: OutputType | str | None = None) -> Any:
        """Run the SELECT and return the first row, or ``None``."""
        shape = self._output(
            output, (OutputType.OBJECT, OutputType.ARRAY_A, OutputType.ARRAY_N)
        )

        def call(driver: Driver, query: CompiledQuery) -> tuple[Any, dict[str, Any]]:
            return driver.fetch_row(query.sql, query.bindings), {}

        row = self._run(events.BEFORE_SELECT_ROW, events.AFTER_SELECT_ROW, self.get_query(), call)
        return None if row is None else self._shape(row, shape)

    def first(self, output: OutputType | str | None = None) -> Any:
        return self.row(output)

    def last(self, output: OutputType | str | None = None, field: str = "ID") -> Any:
        return self.order_by_desc(field).row(output)

    def find(self, value: Any, field: str = "id") -> Any:
        return self.where(field, "=", value).row()

    def find_all(self, field: str, value: Any) -> list[Any]:
        return self.where(field, "=", value).get()

    def exists(self) -> bool:
        return self.row() is not None

    def doesnt_exist(self) -> bool:
        return self.row() is None

    def _scalar(self) -> Any:
        def call(driver: Driver, query: CompiledQuery) -> tuple[Any, dict[str, Any]]:
            return driver.fetch_scalar(query.sql, query.bindings), {}

        return self._run(
            events.BEFORE_SELECT_VALUE, events.AFTER_SELECT_VALUE, self.get_query(), call
        )

    def value(self, column: str) -> Any:
        """Select ``column`` and return its value from the first row."""
        return self.select(column)._scalar()

    def pluck(self, column: str) -> list[Any]:
        """Select ``column`` and return its values from every row."""
        self.select(column)

        def call(driver: Driver, query: CompiledQuery) -> tuple[Any, dict[str, Any]]:
            return driver.fetch_column(query.sql, query.bindings), {}

        return self._run(
            events.BEFORE_SELECT_COLUMN, events.AFTER_SELECT_COLUMN, self.get_query(), call
        )

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def _aggregate(self, kind: str, field: str = "*") -> float:
        selects = self._statements.selects
        if field != "*" and selects is not None:
            declared = [item for item in selects if isinstance(item, str)]
            declared += [item.alias for item in selects if isinstance(item, Aliased)]
            if field not in declared:
                raise ColumnNotFoundError(field, declared)
        if not self._statements.tables:
            raise ValidationError("No table selected", code="NO_TABLE")

        query = self.new_query().from_(self.sub_query(self, "count"))
        query.select(Raw(f"{kind}({field}) AS field"))
        result = query._scalar()
        return float(result) if result is not None else 0.0

    def count(self, field: str = "*") -> int:
        return int(self._aggregate("COUNT", field))

    def sum(self, field: str) -> float:
        return self._aggregate("SUM", field)

    def avg(self, field: str) -> float:
        return self._aggregate("AVG", field)

    def average(self, field: str) -> float:
        return self.avg(field)

    def min(self, field: str) -> float:
        return self._aggregate("MIN", field)

    def max(self, field: str) -> float:
        return self._aggregate("MAX", field)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, operation: Operation, data: Any) -> Any:
        if not isinstance(data, Mapping):
            rows = list(data)
            if not rows:
                return []
            if self.driver.in_transaction():
                return [self._insert(operation, row) for row in rows]
            insert_ids: list[Any] = []

            def insert_all(transaction: Transaction) -> None:
                for row in rows:
                    insert_ids.append(transaction._insert(operation, row))

            self.transaction(insert_all)
            return insert_ids

        def call(driver: Driver, query: CompiledQuery) -> tuple[Any, dict[str, Any]]:
            affected = driver.execute(query.sql, query.bindings)
            insert_id = driver.last_insert_id() if affected == 1 else None
            return insert_id, {"insert_id": insert_id}

        return self._run(
            events.BEFORE_INSERT, events.AFTER_INSERT, self.get_query(operation, data), call
        )

    def insert(self, data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Any:
        """Insert one row (returns its id) or a batch (returns a list of ids).

        A batch runs inside a single transaction unless one is already open.
        """
        return self._insert(Operation.INSERT, data)

    def insert_ignore(self, data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Any:
        return self._insert(Operation.INSERT_IGNORE, data)

    def replace(self, data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Any:
        return self._insert(Operation.REPLACE, data)

    def _write(self, before: str, after: str, query: CompiledQuery) -> int:
        def call(driver: Driver, compiled: CompiledQuery) -> tuple[Any, dict[str, Any]]:
            return driver.execute(compiled.sql, compiled.bindings), {}

        return self._run(before, after, query, call)

    def update(self, data: Mapping[str, Any]) -> int:
        """Run an UPDATE with ``data`` and return the affected row count."""
        return self._write(
            events.BEFORE_UPDATE, events.AFTER_UPDATE, self.get_query(Operation.UPDATE, data)
        )

    def delete(self, columns: Sequence[str] | None = None) -> int:
        return self._write(
            events.BEFORE_DELETE, events.AFTER_DELETE, self.get_query(Operation.DELETE, columns)
        )

    def update_or_insert(self, data: Mapping[str, Any]) -> Any:
        if self.row() is not None:
            return self.update(data)
        return self.insert(data)

    def query(self, sql: str, bindings: Sequence[Any] = ()) -> QueryBuilder:
        """Run arbitrary SQL with ``?`` placeholders."""
        compiled = CompiledQuery(sql, tuple(bindings), self.adapter)
        self._write(events.BEFORE_QUERY, events.AFTER_QUERY, compiled)
        return self

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def transaction(self, callback: Callable[[Transaction], Any]) -> Transaction:
        """Run ``callback`` inside a transaction.

        A transaction is started only when none is open; the builder that
        started it commits after ``callback`` returns or rolls back if it
        raises. Any failure surfaces as :class:`TransactionError` with the
        original exception chained.
        """
        from fluentql.query.transaction import Transaction

        connection = self.get_connection()
        driver = connection.driver
        transaction = Transaction(connection, self._statements.copy())
        started = False
        try:
            if not driver.in_transaction():
                driver.begin_transaction()
                started = True
            callback(transaction)
            if started and driver.in_transaction():
                driver.commit()
        except Exception as exc:
            message = str(exc)
            rollback_error = None
            if started and driver.in_transaction():
                try:
                    driver.rollback()
                except DriverError as rollback_exc:
                    logger.error("Rollback failed: %s", rollback_exc)
                    message = f"{message} (rollback failed: {rollback_exc})"
                    rollback_error = rollback_exc
            raise TransactionError(
                message, query=connection.last_query, rollback_error=rollback_error
            ) from exc
        return transaction
