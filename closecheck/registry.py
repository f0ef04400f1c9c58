# Resource type registry: binds the Spanner handle types that need a deferred
# cleanup call to their descriptor (display name + cleanup method).

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import BaseModel

from closecheck.ir.types import Named, Scope, Type, deref

if TYPE_CHECKING:
    from closecheck.loader import Program

logger = logging.getLogger(__name__)

SPANNER_PACKAGE = "cloud.google.com/go/spanner"


class ResourceKind(str, Enum):
    TRANSACTION = "transaction"
    ITERATOR = "iterator"


class ResourceDescriptor(BaseModel):
    """A resource type and the method that must be deferred to release it."""

    name: str
    cleanup_method: str
    kind: ResourceKind

    model_config = {"frozen": True}

    @property
    def message(self) -> str:
        return f"{self.name}.{self.cleanup_method}() must be deferred"


SPANNER_RESOURCES: tuple[ResourceDescriptor, ...] = (
    ResourceDescriptor(name="ReadOnlyTransaction", cleanup_method="Close", kind=ResourceKind.TRANSACTION),
    ResourceDescriptor(name="BatchReadOnlyTransaction", cleanup_method="Close", kind=ResourceKind.TRANSACTION),
    ResourceDescriptor(name="RowIterator", cleanup_method="Stop", kind=ResourceKind.ITERATOR),
)


class TypeRegistry:
    """
    Maps nominal Named types of one library package to descriptors.

    The registry is filled once from the library's symbol table, then frozen;
    after that it is read-only and may be shared by concurrent analyses.
    """

    def __init__(self, scope: Optional[Scope] = None, descriptors: Iterable[ResourceDescriptor] = ()) -> None:
        self._scope = scope
        self._available = {d.name: d for d in descriptors}
        self._types: dict[Named, ResourceDescriptor] = {}
        self._frozen = False

    @classmethod
    def build(
        cls,
        program: "Program",
        library_path: str = SPANNER_PACKAGE,
        descriptors: Iterable[ResourceDescriptor] = SPANNER_RESOURCES,
    ) -> "TypeRegistry":
        """Register every descriptor whose type the library package declares."""
        library = program.package(library_path)
        registry = cls(library.scope if library is not None else None, descriptors)
        for name in list(registry._available):
            registry.register(name)
        registry.freeze()
        if registry.is_empty:
            logger.debug("Package %s not loaded or declares none of the resource types", library_path)
        else:
            logger.debug("Registered %d resource type(s) from %s", len(registry), library_path)
        return registry

    def register(self, name: str) -> Optional[ResourceDescriptor]:
        """Resolve ``name`` in the library scope; a no-op if it is not declared there."""
        if self._frozen:
            raise RuntimeError("TypeRegistry is frozen; register() must run before scanning")
        descriptor = self._available.get(name)
        if descriptor is None or self._scope is None:
            return None
        named = self._scope.lookup(name)
        if named is None:
            return None
        self._types[named] = descriptor
        return descriptor

    def freeze(self) -> None:
        self._frozen = True

    def lookup(self, t: Optional[Type]) -> Optional[ResourceDescriptor]:
        """Descriptor for ``t`` or ``*t``; matched by type identity, never by shape."""
        t = deref(t)
        if isinstance(t, Named):
            return self._types.get(t)
        return None

    @property
    def is_empty(self) -> bool:
        return not self._types

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, t: object) -> bool:
        return self.lookup(t) is not None  # type: ignore[arg-type]
