"""Dependency injection container.

Databases built without explicit collaborators resolve their engine, image
store and metrics from the global container. Tests swap these out by
building a container of their own and passing its parts to Database.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from prometheus_client import CollectorRegistry

from embedded_sql.infrastructure.config import Config, get_config
from embedded_sql.infrastructure.metrics import MetricsRegistry, get_metrics
from embedded_sql.ports.outbound import ImageStore, SQLEngine

T = TypeVar("T")


class Container:
    """
    Simple dependency injection container.

    Supports singleton and factory registrations with lazy initialization.
    """

    def __init__(self) -> None:
        """Initialize the container."""
        self._factories: dict[type, Callable[[Container], Any]] = {}
        self._instances: dict[type, Any] = {}

    def register_singleton(self, interface: type[T], instance: T) -> None:
        """Register an already built instance."""
        self._instances[interface] = instance

    def register_factory(
        self,
        interface: type[T],
        factory: Callable[[Container], T],
    ) -> None:
        """
        Register a factory, called on first resolve.

        Args:
            interface: The interface/type to register
            factory: Factory function that takes the container and returns an instance
        """
        self._factories[interface] = factory
        self._instances.pop(interface, None)

    def resolve(self, interface: type[T]) -> T:
        """
        Resolve a dependency.

        Raises:
            KeyError: If no registration exists for the interface
        """
        if interface in self._instances:
            return self._instances[interface]

        if interface in self._factories:
            instance = self._factories[interface](self)
            self._instances[interface] = instance
            return instance

        raise KeyError(f"No registration found for {interface}")

    def has(self, interface: type) -> bool:
        """Check if an interface is registered."""
        return interface in self._factories or interface in self._instances

    def clear(self) -> None:
        """Clear all registrations and instances."""
        self._factories.clear()
        self._instances.clear()


def build_container(
    config: Config | None = None,
    registry: CollectorRegistry | None = None,
) -> Container:
    """
    Build a container wired with the default adapters.

    Args:
        config: Configuration to use (default: the global one)
        registry: Prometheus registry for a private MetricsRegistry
            (default: the global metrics)
    """
    # Imported here to avoid an import cycle with the adapters package.
    from embedded_sql.adapters.outbound import FileImageStore, SQLiteEngine

    container = Container()
    container.register_singleton(Config, config or get_config())
    container.register_factory(
        SQLEngine,
        lambda c: SQLiteEngine(busy_timeout_seconds=c.resolve(Config).engine.busy_timeout_seconds),
    )
    container.register_factory(
        ImageStore,
        lambda c: FileImageStore(
            directory=c.resolve(Config).storage.image_dir,
            prefix=c.resolve(Config).storage.file_prefix,
        ),
    )
    container.register_factory(
        MetricsRegistry,
        lambda c: MetricsRegistry(registry) if registry is not None else get_metrics(),
    )
    return container


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def reset_container() -> None:
    """Reset the global container (useful for testing)."""
    global _container
    if _container is not None:
        _container.clear()
    _container = None
