"""SQLite dialect adapter."""
from __future__ import annotations

from fluentql.compile.base import Adapter
from fluentql.errors import CompilationError
from fluentql.query.statements import Operation, Statements


class SQLiteAdapter(Adapter):
    """Compiles statements to SQLite-flavoured SQL.

    ``INSERT IGNORE`` is spelled ``INSERT OR IGNORE``. SQLite has no
    ``ON DUPLICATE KEY UPDATE``; requesting it raises ``CompilationError``.
    UNION members are emitted without parentheses, a member with its own
    ORDER BY or LIMIT is wrapped as ``SELECT * FROM (...)`` and
    ``UNION DISTINCT`` becomes plain ``UNION``.
    """

    @property
    def dialect_name(self) -> str:
        return "sqlite"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def insert_verb(self, operation: Operation) -> str:
        if operation is Operation.INSERT_IGNORE:
            return "INSERT OR IGNORE"
        return super().insert_verb(operation)

    def union_member(self, sql: str, statements: Statements) -> str:
        # compound SELECT members cannot be parenthesised or carry ORDER BY/LIMIT
        if statements.order_bys or statements.limit is not None or statements.offset is not None:
            return f"SELECT * FROM ({sql})"
        return sql

    def union_operator(self, union_type: str) -> str:
        return "UNION ALL" if union_type == "ALL" else "UNION"

    def on_duplicate_clause(self, assignments: str) -> str:
        raise CompilationError(
            "ON DUPLICATE KEY UPDATE is not supported by the sqlite dialect.",
            clause="ON DUPLICATE KEY UPDATE",
        )

    def date_part(self, part: str, column_sql: str) -> str:
        formats = {"YEAR": "%Y", "MONTH": "%m", "DAY": "%d"}
        part = part.upper()
        if part in formats:
            return f"CAST(strftime('{formats[part]}', {column_sql}) AS INTEGER)"
        return f"{part}({column_sql})"

    def cast_date(self, expr: str) -> str:
        return f"DATE({expr})"

    def table_exists_query(self, table: str) -> tuple[str, list[str]]:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", [table]

    def auto_increment_clause(self) -> str:
        # only valid on an INTEGER PRIMARY KEY column, rendered inline
        return "PRIMARY KEY AUTOINCREMENT"

    @property
    def inline_indexes(self) -> bool:
        return False
