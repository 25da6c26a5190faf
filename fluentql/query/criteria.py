"""Builders that collect a bare condition list.

``NestedCriteria`` backs ``where(callback)`` groups and ``JoinBuilder``
backs join ON / USING clauses. Both reuse the full where-family API of
:class:`~fluentql.query.builder.QueryBuilder`; their conditions land in the
``criteria`` field of their own, independent statement snapshot.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from fluentql.query.builder import QueryBuilder
from fluentql.query.statements import Condition


class NestedCriteria(QueryBuilder):
    """Collects the conditions of one parenthesised group."""

    _condition_field = "criteria"


class JoinBuilder(NestedCriteria):
    """Collects the ON / USING criteria of one JOIN.

    The right-hand side of an ``on`` condition is an identifier, not a bound
    value; pass a :class:`~fluentql.query.raw.Raw` to compare with a literal.
    """

    def on(self, key: Any, operator: str | None = None, value: Any = None, joiner: str = "AND") -> JoinBuilder:
        condition = Condition(
            key=self.add_table_prefix(key),
            operator=operator,
            value=self.add_table_prefix(value),
            joiner=joiner,
            condition="ON",
        )
        return self._add_condition(self._condition_field, condition)

    def or_on(self, key: Any, operator: str | None = None, value: Any = None) -> JoinBuilder:
        return self.on(key, operator, value, "OR")

    def using(self, columns: str | Sequence[str]) -> JoinBuilder:
        if isinstance(columns, str):
            columns = [columns]
        condition = Condition(key=None, joiner="AND USING", columns=tuple(columns))
        return self._add_condition(self._condition_field, condition)
