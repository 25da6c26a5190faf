"""Lifecycle hooks fired around query execution.

Every terminal builder operation fires a ``before_*`` action with the
compiled query and an ``after_*`` action once the driver returns, carrying
the execution time (and the insert id for inserts). Observers receive a
:class:`QueryEvent` and cannot change the SQL that runs.

Filters are value transformers: the table prefix passes through
:data:`FILTER_TABLE_PREFIX` before it is applied.

Usage::

    hooks = HookDispatcher()

    @hooks.listens_for(AFTER_SELECT)
    def log_slow(event):
        if event.execution_time > 0.5:
            print(event.query.raw_sql)

    hooks.add_filter(FILTER_TABLE_PREFIX, lambda prefix: "tenant42_")
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fluentql.errors import ConfigurationError

if TYPE_CHECKING:
    from fluentql.connection import Connection
    from fluentql.query.builder import QueryBuilder
    from fluentql.query.compiled import CompiledQuery

logger = logging.getLogger(__name__)

BEFORE_SELECT = "fluentql.before_select"
AFTER_SELECT = "fluentql.after_select"
BEFORE_SELECT_ROW = "fluentql.before_select_row"
AFTER_SELECT_ROW = "fluentql.after_select_row"
BEFORE_SELECT_VALUE = "fluentql.before_select_value"
AFTER_SELECT_VALUE = "fluentql.after_select_value"
BEFORE_SELECT_COLUMN = "fluentql.before_select_column"
AFTER_SELECT_COLUMN = "fluentql.after_select_column"
BEFORE_INSERT = "fluentql.before_insert"
AFTER_INSERT = "fluentql.after_insert"
BEFORE_UPDATE = "fluentql.before_update"
AFTER_UPDATE = "fluentql.after_update"
BEFORE_DELETE = "fluentql.before_delete"
AFTER_DELETE = "fluentql.after_delete"
BEFORE_QUERY = "fluentql.before_query"
AFTER_QUERY = "fluentql.after_query"

ACTIONS: frozenset[str] = frozenset({
    BEFORE_SELECT, AFTER_SELECT,
    BEFORE_SELECT_ROW, AFTER_SELECT_ROW,
    BEFORE_SELECT_VALUE, AFTER_SELECT_VALUE,
    BEFORE_SELECT_COLUMN, AFTER_SELECT_COLUMN,
    BEFORE_INSERT, AFTER_INSERT,
    BEFORE_UPDATE, AFTER_UPDATE,
    BEFORE_DELETE, AFTER_DELETE,
    BEFORE_QUERY, AFTER_QUERY,
})

FILTER_TABLE_PREFIX = "fluentql.add_table_prefix"

FILTERS: frozenset[str] = frozenset({FILTER_TABLE_PREFIX})


@dataclass
class QueryEvent:
    """Payload handed to action listeners.

    Attributes:
        name: The action name (one of :data:`ACTIONS`).
        query: The compiled query being executed.
        builder: The builder that issued the query.
        arguments: Extra context such as ``execution_time`` or ``insert_id``.
    """

    name: str
    query: CompiledQuery
    builder: QueryBuilder
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def insert_id(self) -> int | list[int | None] | None:
        return self.arguments.get("insert_id")

    @property
    def execution_time(self) -> float | None:
        return self.arguments.get("execution_time")

    @property
    def connection(self) -> Connection | None:
        return self.builder.get_connection()


class HookDispatcher:
    """Registry of action listeners and value filters for one connection."""

    def __init__(self) -> None:
        self._actions: dict[str, list[Callable[[QueryEvent], Any]]] = {}
        self._filters: dict[str, list[Callable[[Any], Any]]] = {}

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def add_action(self, name: str, fn: Callable[[QueryEvent], Any]) -> None:
        """Register ``fn`` to run whenever action ``name`` fires.

        Raises:
            ConfigurationError: If ``name`` is not a known action.
        """
        if name not in ACTIONS:
            raise ConfigurationError(
                f"Unknown action: '{name}'. Valid actions: {', '.join(sorted(ACTIONS))}"
            )
        self._actions.setdefault(name, []).append(fn)

    def listens_for(self, name: str) -> Callable[[Callable[[QueryEvent], Any]], Callable[[QueryEvent], Any]]:
        """Decorator form of :meth:`add_action`."""

        def decorator(fn: Callable[[QueryEvent], Any]) -> Callable[[QueryEvent], Any]:
            self.add_action(name, fn)
            return fn

        return decorator

    def remove_action(self, name: str, fn: Callable[[QueryEvent], Any]) -> None:
        listeners = self._actions.get(name, [])
        if fn in listeners:
            listeners.remove(fn)

    def has_action(self, name: str) -> bool:
        return bool(self._actions.get(name))

    def fire(self, name: str, event: QueryEvent) -> None:
        """Call every listener of ``name`` in registration order."""
        listeners = list(self._actions.get(name, []))
        logger.debug("Firing %s to %d listener(s)", name, len(listeners))
        for fn in listeners:
            fn(event)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def add_filter(self, name: str, fn: Callable[[Any], Any]) -> None:
        if name not in FILTERS:
            raise ConfigurationError(
                f"Unknown filter: '{name}'. Valid filters: {', '.join(sorted(FILTERS))}"
            )
        self._filters.setdefault(name, []).append(fn)

    def remove_filter(self, name: str, fn: Callable[[Any], Any]) -> None:
        listeners = self._filters.get(name, [])
        if fn in listeners:
            listeners.remove(fn)

    def apply_filters(self, name: str, value: Any) -> Any:
        """Pass ``value`` through every filter of ``name`` and return the result."""
        for fn in self._filters.get(name, []):
            value = fn(value)
        return value

    def clear(self) -> None:
        self._actions.clear()
        self._filters.clear()
