"""Execution drivers.

``SQLAlchemyDriver`` lives in :mod:`fluentql.drivers.sqlalchemy` and is not
imported here so SQLAlchemy stays optional.
"""
from __future__ import annotations

from fluentql.drivers.base import DBAPIDriver, Driver, translate_placeholders
from fluentql.drivers.sqlite import SQLiteDriver

__all__ = ["DBAPIDriver", "Driver", "SQLiteDriver", "translate_placeholders"]
