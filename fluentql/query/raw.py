"""Raw SQL fragments that bypass identifier quoting."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class Raw:
    """A verbatim SQL fragment with its own bindings.

    A ``Raw`` is never quoted or prefixed. Its bindings are spliced into the
    enclosing statement's binding list at the position the fragment occupies.

    Example::

        builder.select(Raw("COUNT(*) AS total"))
        builder.where(Raw("YEAR(created_at) = ?", [2024]))
    """

    __slots__ = ("_value", "_bindings")

    def __init__(self, value: str, bindings: Iterable[Any] | Any = ()) -> None:
        if isinstance(bindings, (list, tuple)):
            bindings = tuple(bindings)
        elif isinstance(bindings, Iterable) and not isinstance(bindings, (str, bytes)):
            bindings = tuple(bindings)
        else:
            bindings = (bindings,)
        self._value = str(value)
        self._bindings: tuple[Any, ...] = bindings

    @property
    def bindings(self) -> tuple[Any, ...]:
        return self._bindings

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Raw({self._value!r}, {list(self._bindings)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raw):
            return NotImplemented
        return self._value == other._value and self._bindings == other._bindings

    def __hash__(self) -> int:
        return hash((self._value, self._bindings))
