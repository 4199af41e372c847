"""
Dispatcher registry and factory for dqnotify.

Dispatchers register themselves under a type name so that they can be
selected from configuration.
"""

from collections.abc import Callable
from typing import Any

from dqnotify.core import Dispatcher


class DispatcherRegistry:
    """Mapping of dispatcher type names to implementation classes."""

    def __init__(self) -> None:
        self._dispatchers: dict[str, type[Dispatcher]] = {}

    def register_dispatcher(self, type_name: str, cls: type[Dispatcher]) -> None:
        """Register a dispatcher implementation."""
        self._dispatchers[type_name] = cls

    def get_dispatcher(self, type_name: str) -> type[Dispatcher]:
        """Get a dispatcher class by type name."""
        if type_name not in self._dispatchers:
            raise ValueError(f"Unknown dispatcher type: {type_name}")
        return self._dispatchers[type_name]

    def list_dispatchers(self) -> list[str]:
        """List all registered dispatcher type names."""
        return list(self._dispatchers.keys())


# Global registry instance
_registry = DispatcherRegistry()


def create_dispatcher(type_name: str, config: dict[str, Any] | None = None) -> Dispatcher:
    """Create a dispatcher instance from configuration."""
    # Ensure built-in dispatchers have registered themselves
    # pylint: disable=import-outside-toplevel,unused-import
    import dqnotify.dispatchers  # noqa: F401

    cls = _registry.get_dispatcher(type_name)
    return cls(config or {})


def register_dispatcher(type_name: str) -> Callable[[type[Dispatcher]], type[Dispatcher]]:
    """Decorator to register a dispatcher class."""
    def decorator(cls: type[Dispatcher]) -> type[Dispatcher]:
        _registry.register_dispatcher(type_name, cls)
        return cls
    return decorator


def get_registry() -> DispatcherRegistry:
    """Get the global dispatcher registry."""
    return _registry
