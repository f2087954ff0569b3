"""Operation registry for registering and resolving operations.

Manifesto:
    Operations are looked up at runtime by module and name, e.g. the
    ``save`` operation of the ``articles`` module, without import-time
    coupling between the dispatcher and the modules. A module inherits the
    operations of its ancestors: ``articles`` resolves ``save`` to its own
    factory if it registered one, else to the one of ``contents``, else to
    the one of ``nodes``.

Tags:
    opkit, registry, operation-discovery, lookup

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from opkit.logging import get_logger

if TYPE_CHECKING:
    from opkit.modules import Module
    from opkit.operation import Operation

logger = get_logger(__name__)

OperationFactory = Callable[..., "Operation"]


def normalize_operation_name(name: str) -> str:
    """Normalize an operation name: ``save_draft``, ``save-draft`` and ``SaveDraft`` are the same."""
    name = re.sub(r"(?<=[a-z0-9])([A-Z])", r"-\1", name)
    return name.replace("_", "-").lower()


class OperationRegistry:
    """Mapping from ``(module id, operation name)`` to an operation factory.

    A factory is called as ``factory(module, hooks=hooks)`` and must return an
    :class:`~opkit.operation.Operation`; operation classes qualify.
    """

    def __init__(self) -> None:
        self._factories: dict[tuple[str, str], OperationFactory] = {}

    def register(self, module_id: str, name: str, factory: OperationFactory) -> OperationFactory:
        key = (module_id, normalize_operation_name(name))
        if key in self._factories:
            raise ValueError(f"Operation '{name}' is already registered for module '{module_id}'")
        self._factories[key] = factory
        logger.debug(
            "operation_registered",
            module=module_id,
            name=key[1],
            factory=getattr(factory, "__name__", repr(factory)),
        )
        return factory

    def get(self, module_id: str, name: str) -> OperationFactory | None:
        return self._factories.get((module_id, normalize_operation_name(name)))

    def resolve(self, name: str, module: Module) -> OperationFactory | None:
        """Find the factory for an operation, walking up the module's ancestors."""
        for candidate in module.lineage:
            factory = self.get(candidate.id, name)
            if factory is not None:
                return factory
        return None

    def list_operations(self) -> list[tuple[str, str]]:
        return sorted(self._factories)

    def clear(self) -> None:
        self._factories.clear()

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        module_id, name = key
        return (module_id, normalize_operation_name(name)) in self._factories

    def __len__(self) -> int:
        return len(self._factories)


# Global operation registry
_registry = OperationRegistry()


def get_registry() -> OperationRegistry:
    return _registry


def register_operation(module_id: str, name: str) -> Callable[[Any], Any]:
    """Decorator to register an operation class in the global registry.

    Example::

        @register_operation("articles", "publish")
        class PublishOperation(Operation):
            ...
    """

    def decorator(cls: Any) -> Any:
        _registry.register(module_id, name, cls)
        return cls

    return decorator


def clear_registry() -> None:
    """Clear the global registry (for testing)."""
    _registry.clear()
