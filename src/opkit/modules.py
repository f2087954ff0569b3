"""Modules targeted by operations.

A module is the destination of an operation (``articles``, ``users`` ...). It
may inherit from a parent module, in which case the parent's operations are
available to it, and it may expose a ``model`` from which operation records
are loaded by key.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Module:
    """A module descriptor.

    Attributes:
        id: Module identifier, e.g. ``"articles"`` or ``"nodes.tree"``
        parent: Module this one extends
        model: Mapping from record key to record. Keys taken from RESTful
            paths (``/api/articles/12/save``) and from request parameters
            arrive as strings, so the mapping is looked up with ``"12"``.
    """

    id: str
    parent: Module | None = None
    model: Mapping[Any, Any] | None = field(default=None, repr=False)

    @property
    def lineage(self) -> Iterator[Module]:
        """The module followed by its ancestors, closest first."""
        module: Module | None = self
        while module is not None:
            yield module
            module = module.parent

    def __str__(self) -> str:
        return self.id


class ModuleRegistry:
    """Modules available to the dispatcher, by id."""

    def __init__(self, modules: list[Module] | None = None) -> None:
        self._modules: dict[str, Module] = {}
        for module in modules or []:
            self.register(module)

    def register(self, module: Module) -> Module:
        if module.id in self._modules:
            raise ValueError(f"Module '{module.id}' is already registered")
        self._modules[module.id] = module
        return module

    def get(self, module_id: str) -> Module | None:
        return self._modules.get(module_id)

    def __getitem__(self, module_id: str) -> Module:
        return self._modules[module_id]

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)
