"""Custom exception hierarchy for fluentQL.

All public errors inherit from FluentQLError so callers can catch the base
class for any fluentQL-specific failure.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fluentql.query.compiled import CompiledQuery


class FluentQLError(Exception):
    """Base exception for all fluentQL errors."""


class ConfigurationError(FluentQLError):
    """Raised when the builder is used without a usable setup.

    Examples are a builder without a connection, an unknown operation kind
    passed to ``get_query`` or an unregistered dialect name.
    """


class ValidationError(FluentQLError):
    """Raised when caller-supplied input cannot be turned into a query.

    Args:
        message: Human-readable description.
        code: Machine-readable error code (e.g. ``EMPTY_DATA``).
        details: Extra context about the offending input.
    """

    def __init__(
        self,
        message: str,
        code: str = "INVALID_INPUT",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details: dict[str, Any] = details or {}

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured error payload."""
        return {
            "error": self.code,
            "message": str(self),
            "details": self.details,
        }


class EmptyDataError(ValidationError):
    """Raised when an UPDATE or ON DUPLICATE KEY UPDATE has no assignments."""

    def __init__(self, clause: str) -> None:
        super().__init__(
            "No data given.",
            code="EMPTY_DATA",
            details={"clause": clause},
        )


class ColumnNotFoundError(ValidationError):
    """Raised when an aggregate targets a column that is not selected."""

    def __init__(self, column: str, selected: list[str]) -> None:
        super().__init__(
            f"Failed to count query - the column {column} hasn't been "
            "selected in the query.",
            code="COLUMN_NOT_FOUND",
            details={"column": column, "selected": selected},
        )


class ColumnDefinitionError(ValidationError):
    """Raised when a DDL column definition is incomplete or inconsistent."""

    def __init__(self, message: str, column: str) -> None:
        super().__init__(
            message,
            code="INVALID_COLUMN",
            details={"column": column},
        )


class SchemaError(ValidationError):
    """Raised when a DDL table definition cannot be rendered."""

    def __init__(self, message: str, table: str) -> None:
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"table": table},
        )


class CompilationError(FluentQLError):
    """Raised when a statement cannot be expressed in the target dialect.

    Args:
        message: Human-readable description.
        clause: The clause that failed to compile (e.g. ``"INSERT"``).
    """

    def __init__(self, message: str, clause: str | None = None) -> None:
        super().__init__(message)
        self.clause = clause


class DriverError(FluentQLError):
    """Raised when the underlying database driver reports a failure.

    Args:
        message: The driver's error message.
        sql: The SQL text that was being executed, when known.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        if sql:
            message = f"{message}. SQL query: {sql}"
        super().__init__(message)
        self.sql = sql


class QueryBuilderError(FluentQLError):
    """Raised for failures tied to a specific built query.

    Args:
        message: Human-readable description.
        query: The compiled query of the builder at the time of failure.
    """

    def __init__(self, message: str, query: CompiledQuery | None = None) -> None:
        super().__init__(message)
        self.query = query


class TransactionError(QueryBuilderError):
    """Raised when a transaction callback, commit or rollback fails.

    The original exception is always available as ``__cause__``. When the
    rollback that follows a failure also fails, that error is kept in
    ``rollback_error``.
    """

    def __init__(
        self,
        message: str,
        query: CompiledQuery | None = None,
        rollback_error: Exception | None = None,
    ) -> None:
        super().__init__(message, query=query)
        self.rollback_error = rollback_error
