"""Driver abstraction and the DB-API 2.0 implementation.

Compiled queries always use ``?`` placeholders. A driver declares its
PEP 249 ``paramstyle`` and every call goes through
:func:`translate_placeholders`, which rewrites the placeholders and the
binding container to what the underlying client library expects:

============  ===========  ==================
paramstyle    placeholder  parameters
============  ===========  ==================
``qmark``     ``?``        tuple
``format``    ``%s``       tuple
``numeric``   ``:1``       tuple
``named``     ``:p0``      dict
``pyformat``  ``%(p0)s``   dict
============  ===========  ==================

Literal ``%`` characters are doubled for the two format styles.
"""
from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from fluentql.errors import DriverError, ValidationError

logger = logging.getLogger(__name__)

#: Python types a binding may have once normalised by the adapter.
ALLOWED_BINDING_TYPES: tuple[type, ...] = (
    str,
    int,
    float,
    bool,
    Decimal,
    date,
    datetime,
    time,
    bytes,
    type(None),
)

PARAMSTYLES = frozenset({"qmark", "format", "numeric", "named", "pyformat"})


def check_binding(value: Any) -> Any:
    """Return ``value`` unchanged if a driver can bind it.

    Raises:
        ValidationError: For any other type.
    """
    if not isinstance(value, ALLOWED_BINDING_TYPES):
        raise ValidationError(
            f"Value type {type(value).__name__} not allowed",
            code="INVALID_BINDING",
            details={"type": type(value).__name__},
        )
    return value


def split_placeholders(sql: str) -> list[str]:
    """Split ``sql`` on ``?`` placeholders outside single-quoted literals."""
    segments: list[str] = []
    current: list[str] = []
    quoted = False
    for char in sql:
        if char == "'":
            quoted = not quoted
        if char == "?" and not quoted:
            segments.append("".join(current))
            current = []
            continue
        current.append(char)
    segments.append("".join(current))
    return segments


def translate_placeholders(
    sql: str,
    bindings: Sequence[Any] | Mapping[str, Any],
    paramstyle: str = "qmark",
    escape: Callable[[str], str] | None = None,
) -> tuple[str, Sequence[Any] | dict[str, Any]]:
    """Rewrite ``?`` placeholders for ``paramstyle``.

    Args:
        sql: SQL with ``?`` placeholders.
        bindings: Values in placeholder order. A mapping is assumed to be
            already keyed for the driver and passes through untouched.
        paramstyle: A PEP 249 paramstyle name.
        escape: Optional function applied to every non-placeholder text
            segment (e.g. to escape characters the client library treats
            specially).

    Returns:
        ``(sql, params)`` ready for ``cursor.execute``.

    Raises:
        ValidationError: If the placeholder count does not match the
            bindings or a binding has an unsupported type.
    """
    if paramstyle not in PARAMSTYLES:
        raise ValidationError(
            f"Unknown paramstyle '{paramstyle}'.",
            code="INVALID_PARAMSTYLE",
            details={"paramstyle": paramstyle},
        )
    if isinstance(bindings, Mapping):
        return sql, dict(bindings)

    values = [check_binding(value) for value in bindings]
    segments = split_placeholders(sql)
    if len(segments) - 1 != len(values):
        raise ValidationError(
            f"Query has {len(segments) - 1} placeholders but {len(values)} bindings.",
            code="BINDING_MISMATCH",
            details={"sql": sql},
        )

    if escape is not None:
        segments = [escape(segment) for segment in segments]
    if paramstyle in ("format", "pyformat"):
        segments = [segment.replace("%", "%%") for segment in segments]

    if paramstyle == "qmark":
        return "?".join(segments), tuple(values)

    out = [segments[0]]
    for index, segment in enumerate(segments[1:]):
        if paramstyle == "format":
            out.append("%s")
        elif paramstyle == "numeric":
            out.append(f":{index + 1}")
        elif paramstyle == "named":
            out.append(f":p{index}")
        else:
            out.append(f"%(p{index})s")
        out.append(segment)
    translated = "".join(out)

    if paramstyle in ("named", "pyformat"):
        return translated, {f"p{index}": value for index, value in enumerate(values)}
    return translated, tuple(values)


def sql_literal(value: Any) -> str:
    """Render a binding as a literal for :meth:`Driver.prepare`."""
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


# ---------------------------------------------------------------------------
# Driver interface
# ---------------------------------------------------------------------------


class Driver(ABC):
    """The narrow execution interface the query builder needs.

    Every method taking ``(sql, bindings)`` expects ``?`` placeholders and
    raises :class:`~fluentql.errors.DriverError` with the SQL attached when
    the database reports a failure.
    """

    paramstyle: str = "qmark"

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix

    @abstractmethod
    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        """Run a statement and return the number of affected rows."""

    @abstractmethod
    def fetch_all(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Return all rows as column-name to value mappings."""

    @abstractmethod
    def last_insert_id(self) -> int | None:
        """Return the id generated by the most recent INSERT, if any."""

    @abstractmethod
    def last_error_message(self) -> str:
        """Return the message of the most recent failure, or ``""``."""

    @abstractmethod
    def begin_transaction(self) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def in_transaction(self) -> bool: ...

    def fetch_row(self, sql: str, bindings: Sequence[Any] = ()) -> dict[str, Any] | None:
        rows = self.fetch_all(sql, bindings)
        return rows[0] if rows else None

    def fetch_scalar(self, sql: str, bindings: Sequence[Any] = ()) -> Any:
        row = self.fetch_row(sql, bindings)
        if row is None:
            return None
        return next(iter(row.values()), None)

    def fetch_column(self, sql: str, bindings: Sequence[Any] = ()) -> list[Any]:
        return [next(iter(row.values()), None) for row in self.fetch_all(sql, bindings)]

    def prepare(self, sql: str, *bindings: Any) -> str:
        """Return ``sql`` with every ``?`` replaced by a quoted literal."""
        if len(bindings) == 1 and isinstance(bindings[0], (list, tuple)):
            bindings = tuple(bindings[0])
        segments = split_placeholders(sql)
        out = [segments[0]]
        for index, segment in enumerate(segments[1:]):
            out.append(sql_literal(bindings[index]) if index < len(bindings) else "?")
            out.append(segment)
        return "".join(out)

    def get_prefix(self) -> str:
        return self._prefix

    def set_prefix(self, prefix: str) -> None:
        self._prefix = prefix

    def close(self) -> None:
        """Release the underlying connection. The default does nothing."""


# ---------------------------------------------------------------------------
# DB-API 2.0
# ---------------------------------------------------------------------------


class DBAPIDriver(Driver):
    """Driver over any PEP 249 connection object.

    Statements run outside an explicit transaction are committed
    immediately, so the driver behaves as an autocommit connection until
    :meth:`begin_transaction` is called.

    Args:
        connection: An open DB-API connection.
        paramstyle: Placeholder style of the client library. Defaults to the
            ``paramstyle`` attribute of the connection's module.
        prefix: Table prefix reported by :meth:`get_prefix`.
    """

    def __init__(
        self,
        connection: Any,
        paramstyle: str | None = None,
        prefix: str = "",
    ) -> None:
        super().__init__(prefix)
        self._connection = connection
        module = importlib.import_module(type(connection).__module__.split(".")[0])
        self.paramstyle = paramstyle or getattr(module, "paramstyle", "qmark")
        self._error_class: type[BaseException] = getattr(module, "Error", Exception)
        self._in_transaction = False
        self._last_insert_id: int | None = None
        self._last_error = ""

    @property
    def connection(self) -> Any:
        return self._connection

    def _run(self, sql: str, bindings: Sequence[Any]) -> Any:
        statement, params = translate_placeholders(sql, bindings, self.paramstyle)
        cursor = self._connection.cursor()
        try:
            cursor.execute(statement, params)
        except self._error_class as exc:
            self._last_error = str(exc)
            logger.error("Query failed: %s (%s)", statement, exc)
            cursor.close()
            if not self._in_transaction:
                self._connection.rollback()
            raise DriverError(str(exc), sql=statement) from exc
        self._last_error = ""
        return cursor

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        cursor = self._run(sql, bindings)
        try:
            self._last_insert_id = getattr(cursor, "lastrowid", None)
            affected = cursor.rowcount
        finally:
            cursor.close()
        self._autocommit()
        return max(affected, 0)

    def fetch_all(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        cursor = self._run(sql, bindings)
        rows: list[dict[str, Any]] = []
        try:
            if cursor.description is not None:
                columns = [column[0] for column in cursor.description]
                rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()
        self._autocommit()
        return rows

    def last_insert_id(self) -> int | None:
        return self._last_insert_id

    def last_error_message(self) -> str:
        return self._last_error

    def begin_transaction(self) -> None:
        logger.debug("BEGIN")
        self._in_transaction = True

    def commit(self) -> None:
        logger.debug("COMMIT")
        try:
            self._connection.commit()
        except self._error_class as exc:
            raise DriverError(str(exc), sql="COMMIT") from exc
        finally:
            self._in_transaction = False

    def rollback(self) -> None:
        logger.warning("ROLLBACK")
        self._in_transaction = False
        try:
            self._connection.rollback()
        except self._error_class as exc:
            raise DriverError(str(exc), sql="ROLLBACK") from exc

    def in_transaction(self) -> bool:
        return self._in_transaction

    def close(self) -> None:
        self._connection.close()
