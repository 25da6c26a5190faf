"""Driver backed by a SQLAlchemy ``Engine``.

Install the optional dependency before using this module::

    pip install "fluentql[sqlalchemy]"

Statements are executed through :func:`sqlalchemy.text` with ``:p0``-style
named parameters, so any backend SQLAlchemy can reach is usable.

Example::

    from sqlalchemy import create_engine
    from fluentql.drivers.sqlalchemy import SQLAlchemyDriver

    driver = SQLAlchemyDriver(create_engine("sqlite://"))
"""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from fluentql.drivers.base import Driver, translate_placeholders
from fluentql.errors import DriverError

if TYPE_CHECKING:
    from sqlalchemy import Connection as SAConnection
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_BIND_LIKE = re.compile(r":(?=\w)")


def _escape_colons(segment: str) -> str:
    # text() would read ":word" as a bind parameter
    return _BIND_LIKE.sub(r"\\:", segment)


class SQLAlchemyDriver(Driver):
    """Driver over one SQLAlchemy connection checked out from ``engine``.

    Statements outside an explicit transaction are committed immediately.

    Args:
        engine: A SQLAlchemy :class:`~sqlalchemy.engine.Engine`.
        prefix: Table prefix reported by :meth:`get_prefix`.

    Raises:
        ImportError: If ``sqlalchemy`` is not installed.
    """

    paramstyle = "named"

    def __init__(self, engine: Engine, prefix: str = "") -> None:
        try:
            from sqlalchemy import exc as _exc
            from sqlalchemy import text as _text
        except ImportError as exc:
            raise ImportError(
                "SQLAlchemy is required for SQLAlchemyDriver. "
                'Install it with: pip install "fluentql[sqlalchemy]"'
            ) from exc

        super().__init__(prefix)
        self._engine = engine
        self._text = _text
        self._error_class = _exc.SQLAlchemyError
        self._conn: SAConnection = engine.connect()
        self._in_transaction = False
        self._last_insert_id: int | None = None
        self._last_error = ""

    @property
    def engine(self) -> Engine:
        return self._engine

    def _run(self, sql: str, bindings: Sequence[Any]) -> Any:
        statement, params = translate_placeholders(
            sql, bindings, self.paramstyle, escape=_escape_colons
        )
        try:
            result = self._conn.execute(self._text(statement), params)
        except self._error_class as exc:
            self._last_error = str(exc)
            logger.error("Query failed: %s (%s)", statement, exc)
            if not self._in_transaction:
                self._conn.rollback()
            raise DriverError(str(exc), sql=statement) from exc
        self._last_error = ""
        return result

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._conn.commit()

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        result = self._run(sql, bindings)
        self._last_insert_id = getattr(result, "lastrowid", None)
        affected = result.rowcount
        result.close()
        self._autocommit()
        return max(affected, 0)

    def fetch_all(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        result = self._run(sql, bindings)
        rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        self._autocommit()
        return rows

    def last_insert_id(self) -> int | None:
        return self._last_insert_id

    def last_error_message(self) -> str:
        return self._last_error

    def begin_transaction(self) -> None:
        logger.debug("BEGIN")
        if self._conn.in_transaction():
            self._conn.commit()
        self._conn.begin()
        self._in_transaction = True

    def commit(self) -> None:
        logger.debug("COMMIT")
        try:
            self._conn.commit()
        except self._error_class as exc:
            raise DriverError(str(exc), sql="COMMIT") from exc
        finally:
            self._in_transaction = False

    def rollback(self) -> None:
        logger.warning("ROLLBACK")
        self._in_transaction = False
        try:
            self._conn.rollback()
        except self._error_class as exc:
            raise DriverError(str(exc), sql="ROLLBACK") from exc

    def in_transaction(self) -> bool:
        return self._in_transaction

    def close(self) -> None:
        self._conn.close()
