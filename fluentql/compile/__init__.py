"""Dialect adapters and their registry."""
from __future__ import annotations

from fluentql.compile.base import Adapter
from fluentql.compile.mysql import MySQLAdapter
from fluentql.compile.postgres import PostgresAdapter
from fluentql.compile.registry import AdapterFactory
from fluentql.compile.sqlite import SQLiteAdapter

AdapterFactory.register_class("mysql", MySQLAdapter)
AdapterFactory.register_class("sqlite", SQLiteAdapter)
AdapterFactory.register_class("postgres", PostgresAdapter)

__all__ = [
    "Adapter",
    "AdapterFactory",
    "MySQLAdapter",
    "PostgresAdapter",
    "SQLiteAdapter",
]
