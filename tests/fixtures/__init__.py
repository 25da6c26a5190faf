"""Test fixtures: a recording driver and the sample SQLite DDL."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from fluentql.drivers.base import Driver, translate_placeholders
from fluentql.errors import DriverError

_FIXTURES_DIR = Path(__file__).parent


def load_ddl() -> str:
    """Return the sample SQLite DDL script."""
    return (_FIXTURES_DIR / "ddl_sqlite.sql").read_text()


class RecordingDriver(Driver):
    """In-memory driver that records every call and replays canned rows.

    ``rows`` is returned by every fetch; ``fail_on`` makes any statement
    containing that substring raise ``DriverError``.
    """

    def __init__(self, rows: list[dict[str, Any]] | None = None, prefix: str = "wp_") -> None:
        super().__init__(prefix)
        self.rows = rows or []
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []
        self.transactions: list[str] = []
        self.fail_on: str | None = None
        self.affected = 1
        self._next_id = 0
        self._open = False

    def _record(self, kind: str, sql: str, bindings: Sequence[Any]) -> None:
        translate_placeholders(sql, bindings, self.paramstyle)
        self.calls.append((kind, sql, tuple(bindings)))
        if self.fail_on and self.fail_on in sql:
            raise DriverError("forced failure", sql=sql)

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        self._record("execute", sql, bindings)
        self._next_id += 1
        return self.affected

    def fetch_all(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        self._record("fetch", sql, bindings)
        return [dict(row) for row in self.rows]

    def last_insert_id(self) -> int | None:
        return self._next_id

    def last_error_message(self) -> str:
        return ""

    def begin_transaction(self) -> None:
        self.transactions.append("begin")
        self._open = True

    def commit(self) -> None:
        self.transactions.append("commit")
        self._open = False

    def rollback(self) -> None:
        self.transactions.append("rollback")
        self._open = False

    def in_transaction(self) -> bool:
        return self._open

    @property
    def statements(self) -> list[str]:
        return [sql for _kind, sql, _bindings in self.calls]
