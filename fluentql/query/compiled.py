"""Compiled query: SQL text plus its ordered bindings."""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fluentql.drivers.base import split_placeholders
from fluentql.query.raw import Raw

if TYPE_CHECKING:
    from fluentql.compile.base import Adapter


@dataclass(frozen=True)
class CompiledQuery:
    """The output of a successful compilation.

    Attributes:
        sql: SQL text with ``?`` placeholders (or ``:name`` placeholders
            when ``bindings`` is a mapping).
        bindings: Values for the placeholders, in textual order.
        adapter: The adapter that produced the SQL; used to render literals
            for :attr:`raw_sql`.
    """

    sql: str
    bindings: tuple[Any, ...] | Mapping[str, Any]
    adapter: Adapter | None = None

    def get_sql(self) -> str:
        return self.sql

    def get_bindings(self) -> tuple[Any, ...] | Mapping[str, Any]:
        return self.bindings

    @property
    def raw_sql(self) -> str:
        """The SQL with every binding interpolated as a literal.

        For logging and debugging only; never execute this string.
        """
        if isinstance(self.bindings, Mapping):
            sql = self.sql
            for name, value in self.bindings.items():
                pattern = re.compile(rf":{re.escape(str(name))}\b")
                literal = self._literal(value)
                sql = pattern.sub(lambda _m: literal, sql, count=1)
            return sql

        pieces = split_placeholders(self.sql)
        if len(pieces) == 1:
            return self.sql
        out = [pieces[0]]
        values = list(self.bindings)
        for index, piece in enumerate(pieces[1:]):
            if index < len(values):
                out.append(self._literal(values[index]))
            else:
                out.append("?")
            out.append(piece)
        return "".join(out)

    def get_raw_sql(self) -> str:
        return self.raw_sql

    def _literal(self, value: Any) -> str:
        if isinstance(value, Raw):
            return str(value)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            return ", ".join(self._literal(item) for item in value)
        if self.adapter is None:
            return repr(value)
        return self.adapter.quote_literal(value)

    def __str__(self) -> str:
        return self.sql
