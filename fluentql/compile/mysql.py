"""MySQL dialect adapter."""
from __future__ import annotations

from typing import Any

from fluentql.compile.base import Adapter


class MySQLAdapter(Adapter):
    """Compiles statements to MySQL-flavoured SQL.

    Identifiers are quoted with backticks (`` ` ``) when quoting is enabled.
    ``INSERT IGNORE``, ``REPLACE`` and ``ON DUPLICATE KEY UPDATE`` are all
    native.
    """

    @property
    def dialect_name(self) -> str:
        return "mysql"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace("`", "``")
        return f"`{escaped}`"

    def quote_literal(self, value: Any) -> str:
        literal = super().quote_literal(value)
        if literal.startswith("'"):
            # MySQL treats backslash as an escape inside string literals
            return "'" + literal[1:-1].replace("\\", "\\\\") + "'"
        return literal
