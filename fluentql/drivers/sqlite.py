"""Driver for the standard-library ``sqlite3`` module."""
from __future__ import annotations

import sqlite3
from typing import Any

from fluentql.drivers.base import DBAPIDriver


class SQLiteDriver(DBAPIDriver):
    """:class:`DBAPIDriver` that opens its own ``sqlite3`` connection.

    Example::

        driver = SQLiteDriver(":memory:", prefix="app_")
        connection = Connection(driver, ConnectionConfig(dialect="sqlite"))
    """

    def __init__(self, database: str = ":memory:", prefix: str = "", **kwargs: Any) -> None:
        super().__init__(sqlite3.connect(database, **kwargs), paramstyle="qmark", prefix=prefix)
