"""The dialect-agnostic statement model accumulated by ``QueryBuilder``.

A :class:`Statements` instance is a plain record with one field per clause
kind. Fields that were never touched stay ``None`` so an *absent* clause is
distinguishable from an *empty* one; ``group_bys`` and ``unions`` always
start out as empty lists.

Condition entries (:class:`Condition`) are shared by WHERE, HAVING, nested
groups and JOIN ... ON criteria; the adapter compiles them all through the
same routine.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from fluentql.errors import ConfigurationError
from fluentql.query.raw import Raw

if TYPE_CHECKING:
    from fluentql.query.criteria import NestedCriteria


class Operation(str, Enum):
    """The closed set of statement kinds an adapter can compile."""

    SELECT = "select"
    INSERT = "insert"
    INSERT_IGNORE = "insertignore"
    REPLACE = "replace"
    UPDATE = "update"
    DELETE = "delete"
    CRITERIA_ONLY = "criteriaonly"

    @classmethod
    def parse(cls, value: Operation | str) -> Operation:
        """Resolve ``value`` (case-insensitive) to an :class:`Operation`.

        Raises:
            ConfigurationError: If ``value`` names no known statement kind.
        """
        if isinstance(value, Operation):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"{value} is not a known type.") from None


class OutputType(str, Enum):
    """Row shapes returned by the fetch operations."""

    OBJECT = "OBJECT"
    OBJECT_K = "OBJECT_K"
    ARRAY_A = "ARRAY_A"
    ARRAY_N = "ARRAY_N"


@dataclass(frozen=True)
class NestedGroup:
    """A parenthesised condition group produced by a callback.

    The builder invokes the callback once with a fresh
    :class:`~fluentql.query.criteria.NestedCriteria` and keeps the condition
    list it collected; the adapter compiles that list on its own and wraps
    it in parentheses.
    """

    conditions: tuple[Condition, ...]

    @classmethod
    def collect(
        cls,
        callback: Callable[[NestedCriteria], Any],
        criteria: NestedCriteria,
    ) -> NestedGroup:
        callback(criteria)
        return cls(tuple(criteria.get_statements().criteria or ()))


@dataclass(frozen=True)
class Condition:
    """One entry of a WHERE / HAVING / ON criteria list.

    Attributes:
        key: Column name, :class:`Raw` fragment or :class:`NestedGroup`.
        operator: Comparison operator; ``None`` for bare raw conditions and
            nested groups.
        value: Scalar, sequence (IN / BETWEEN), :class:`Raw` or ``None``.
        joiner: ``AND``, ``OR``, ``AND NOT``, ``OR NOT`` or ``AND USING``.
        condition: ``"ON"`` for the first entry of a join criteria list.
        columns: Column list of a ``USING (...)`` join.
    """

    key: str | Raw | NestedGroup | None
    operator: str | None = None
    value: Any = None
    joiner: str = "AND"
    condition: str | None = None
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class Aliased:
    """A selected expression with an explicit output alias."""

    expr: str | Raw
    alias: str


@dataclass(frozen=True)
class OrderByEntry:
    field: str | Raw
    direction: str = "ASC"


@dataclass
class JoinEntry:
    """A JOIN clause: kind keyword, target table and its ON/USING criteria."""

    type: str
    table: str | Raw | tuple[str, str]
    criteria: tuple[Condition, ...] = ()


@dataclass(frozen=True)
class UnionEntry:
    """A union member captured at the time ``union()`` was called."""

    statements: Statements
    type: str = ""


SelectItem = str | Raw | Aliased


@dataclass
class Statements:
    """Clause-by-clause snapshot of a query under construction."""

    selects: list[SelectItem] | None = None
    distincts: list[SelectItem] | None = None
    tables: list[str | Raw] | None = None
    aliases: dict[str, str] | None = None
    wheres: list[Condition] | None = None
    havings: list[Condition] | None = None
    criteria: list[Condition] | None = None
    joins: list[JoinEntry] | None = None
    group_bys: list[str | Raw] = field(default_factory=list)
    order_bys: list[OrderByEntry] | None = None
    unions: list[UnionEntry] = field(default_factory=list)
    limit: int | None = None
    offset: int | None = None
    lock: str | None = None
    on_duplicate: dict[str, Any] | None = None

    def copy(self) -> Statements:
        """Return an independent copy; clause entries are shared by reference."""

        def _dup(value: Any) -> Any:
            if isinstance(value, list):
                return list(value)
            if isinstance(value, dict):
                return dict(value)
            return value

        return Statements(
            selects=_dup(self.selects),
            distincts=_dup(self.distincts),
            tables=_dup(self.tables),
            aliases=_dup(self.aliases),
            wheres=_dup(self.wheres),
            havings=_dup(self.havings),
            criteria=_dup(self.criteria),
            joins=_dup(self.joins),
            group_bys=list(self.group_bys),
            order_bys=_dup(self.order_bys),
            unions=list(self.unions),
            limit=self.limit,
            offset=self.offset,
            lock=self.lock,
            on_duplicate=_dup(self.on_duplicate),
        )
