"""Transaction handle passed to ``QueryBuilder.transaction`` callbacks."""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fluentql.errors import DriverError, TransactionError
from fluentql.query.builder import QueryBuilder


class Transaction(QueryBuilder):
    """A builder bound to the currently open transaction.

    It starts with a copy of the parent builder's statements, so
    ``transaction.insert(...)`` targets the same table. Calling
    :meth:`commit` or :meth:`rollback` ends the transaction early; the
    enclosing ``QueryBuilder.transaction`` call then leaves it alone.
    """

    def transaction(self, callback: Callable[[Transaction], Any]) -> Transaction:
        """Run ``callback`` inside the already open transaction."""
        callback(self)
        return self

    def commit(self) -> None:
        try:
            self.driver.commit()
        except DriverError as exc:
            raise TransactionError(str(exc), query=self.get_last_query()) from exc

    def rollback(self) -> None:
        try:
            self.driver.rollback()
        except DriverError as exc:
            raise TransactionError(str(exc), query=self.get_last_query()) from exc
