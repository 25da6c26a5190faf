"""Adapter registry.

``AdapterFactory`` maps dialect names to :class:`~fluentql.compile.base.Adapter`
subclasses so a ``Connection`` can resolve its adapter from configuration
alone. Third-party dialects register once and are picked up everywhere.

Usage::

    from fluentql.compile.registry import AdapterFactory

    @AdapterFactory.register("mariadb")
    class MariaDBAdapter(MySQLAdapter):
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import ClassVar

from fluentql.compile.base import Adapter
from fluentql.errors import ConfigurationError


class AdapterFactory:
    """Registry mapping dialect names to :class:`Adapter` classes.

    Example::

        adapter = AdapterFactory.create("sqlite", quote_identifiers=True)
    """

    _adapters: ClassVar[dict[str, type[Adapter]]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[Adapter]], type[Adapter]]:
        """Decorator that registers an adapter class under ``name``.

        Args:
            name: The dialect name (e.g. ``"mysql"``).

        Returns:
            A decorator that registers and returns the adapter class.
        """

        def decorator(adapter_cls: type[Adapter]) -> type[Adapter]:
            cls._adapters[name] = adapter_cls
            return adapter_cls

        return decorator

    @classmethod
    def register_class(cls, name: str, adapter_cls: type[Adapter]) -> None:
        """Register an adapter class without using the decorator form."""
        cls._adapters[name] = adapter_cls

    @classmethod
    def create(cls, name: str, quote_identifiers: bool = False) -> Adapter:
        """Instantiate the adapter registered for ``name``.

        Args:
            name: The dialect name.
            quote_identifiers: Forwarded to the adapter constructor.

        Returns:
            A fresh :class:`Adapter` instance.

        Raises:
            ConfigurationError: If no adapter is registered for ``name``.
        """
        adapter_cls = cls._adapters.get(name)
        if adapter_cls is None:
            registered = sorted(cls._adapters)
            raise ConfigurationError(
                f"Unsupported dialect: '{name}'. Registered dialects: {registered}."
            )
        return adapter_cls(quote_identifiers=quote_identifiers)

    @classmethod
    def registered_dialects(cls) -> list[str]:
        """Return the sorted list of registered dialect names."""
        return sorted(cls._adapters)
