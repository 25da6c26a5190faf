"""PostgreSQL dialect adapter."""
from __future__ import annotations

from fluentql.compile.base import Adapter
from fluentql.errors import CompilationError
from fluentql.query.statements import Operation


class PostgresAdapter(Adapter):
    """Compiles statements to PostgreSQL-flavoured SQL.

    ``INSERT IGNORE`` becomes ``INSERT ... ON CONFLICT DO NOTHING``.
    ``REPLACE`` and ``ON DUPLICATE KEY UPDATE`` need a conflict target that
    the statement model does not carry, so both raise ``CompilationError``.
    """

    @property
    def dialect_name(self) -> str:
        return "postgres"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def insert_verb(self, operation: Operation) -> str:
        if operation is Operation.REPLACE:
            raise CompilationError(
                "REPLACE is not supported by the postgres dialect.",
                clause="REPLACE",
            )
        return "INSERT"

    def insert_suffix(self, operation: Operation) -> str:
        if operation is Operation.INSERT_IGNORE:
            return "ON CONFLICT DO NOTHING"
        return ""

    def on_duplicate_clause(self, assignments: str) -> str:
        raise CompilationError(
            "ON DUPLICATE KEY UPDATE is not supported by the postgres dialect.",
            clause="ON DUPLICATE KEY UPDATE",
        )

    def date_part(self, part: str, column_sql: str) -> str:
        part = part.upper()
        if part in ("DATE", "TIME"):
            return f"CAST({column_sql} AS {part})"
        return f"EXTRACT({part} FROM {column_sql})"

    def table_exists_query(self, table: str) -> tuple[str, list[str]]:
        return "SELECT tablename FROM pg_catalog.pg_tables WHERE tablename = ?", [table]

    def auto_increment_clause(self) -> str:
        return "GENERATED BY DEFAULT AS IDENTITY"

    @property
    def inline_indexes(self) -> bool:
        return False
