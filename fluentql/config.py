"""Pydantic model for connection-level configuration.

Example::

    from fluentql import Connection, ConnectionConfig, SQLiteDriver

    config = ConnectionConfig(dialect="sqlite", table_prefix="app_")
    connection = Connection(SQLiteDriver(), config)
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from fluentql.query.statements import OutputType


class ConnectionConfig(BaseModel):
    """Settings shared by every builder created from one connection.

    Attributes:
        dialect: Name of the adapter registered with ``AdapterFactory``.
        quote_identifiers: Wrap identifiers in the dialect's quote character.
            Off by default, so identifiers are emitted exactly as given.
        table_prefix: ``False`` disables prefixing; ``True`` adopts the
            driver's prefix; a string becomes the driver's prefix.
        default_output: Row shape used when a fetch call does not name one.
    """

    model_config = ConfigDict(extra="forbid")

    dialect: str = Field(default="mysql", min_length=1)
    quote_identifiers: bool = False
    table_prefix: str | bool = False
    default_output: OutputType = OutputType.OBJECT
