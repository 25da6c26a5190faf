"""Connection: binds a driver, an adapter, hooks and configuration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fluentql.compile import AdapterFactory
from fluentql.config import ConnectionConfig
from fluentql.events import HookDispatcher

if TYPE_CHECKING:
    from fluentql.compile.base import Adapter
    from fluentql.drivers.base import Driver
    from fluentql.query.builder import QueryBuilder
    from fluentql.query.compiled import CompiledQuery

logger = logging.getLogger(__name__)


class Connection:
    """Everything a :class:`~fluentql.query.builder.QueryBuilder` needs.

    Args:
        driver: The execution driver.
        config: Connection settings; defaults to ``ConnectionConfig()``.
        hooks: Hook dispatcher; a private one is created when omitted.
        adapter: Explicit adapter instance. When omitted it is resolved from
            ``config.dialect`` through ``AdapterFactory``.
    """

    def __init__(
        self,
        driver: Driver,
        config: ConnectionConfig | None = None,
        hooks: HookDispatcher | None = None,
        adapter: Adapter | None = None,
    ) -> None:
        self.config = config or ConnectionConfig()
        self.driver = driver
        self.adapter = adapter or AdapterFactory.create(
            self.config.dialect, quote_identifiers=self.config.quote_identifiers
        )
        self.hooks = hooks or HookDispatcher()
        self.table_prefix: str | None = None
        self.last_query: CompiledQuery | None = None
        self.set_table_prefix(self.config.table_prefix)

    def set_table_prefix(self, prefix: str | bool = True) -> Connection:
        """Configure table-name prefixing for builders of this connection.

        ``False`` turns prefixing off, a string becomes the driver's prefix,
        and ``True`` adopts whatever prefix the driver already reports.
        """
        if prefix is False:
            self.table_prefix = None
            return self
        if isinstance(prefix, str):
            self.driver.set_prefix(prefix)
        self.table_prefix = self.driver.get_prefix() or None
        logger.debug("Table prefix set to %r", self.table_prefix)
        return self

    def create_query_builder(self) -> QueryBuilder:
        from fluentql.query.builder import QueryBuilder

        return QueryBuilder(self)

    def get_last_query(self) -> CompiledQuery | None:
        return self.last_query

    def close(self) -> None:
        self.driver.close()
