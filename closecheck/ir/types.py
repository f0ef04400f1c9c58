# Static type model for the def-use representation: nominal Named types,
# pointers, tuples, signatures, and the package-level symbol table (Scope).

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


class Type:
    """Base class for every static type attached to a value."""


class Named(Type):
    """
    A declared type, e.g. ``spanner.ReadOnlyTransaction``.

    Identity is nominal: two Named instances are equal only if they are the
    same object, so structurally identical types declared under different
    names (or in different packages) are never conflated.
    """

    def __init__(self, package_path: str, name: str, kind: str = "other") -> None:
        self.package_path = package_path
        self.name = name
        # "struct", "interface" or "other"
        self.kind = kind
        self.methods: dict[str, Signature] = {}
        self.fields: dict[str, Type] = {}

    @property
    def is_interface(self) -> bool:
        return self.kind == "interface"

    def __repr__(self) -> str:
        return f"Named({self.package_path}.{self.name})"


@dataclass(frozen=True)
class Pointer(Type):
    elem: Type

    def __repr__(self) -> str:
        return f"*{self.elem!r}"


@dataclass(frozen=True)
class Tuple(Type):
    items: tuple[Type, ...]

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class Basic(Type):
    """Builtin or otherwise unresolved type, kept only for display."""

    name: str


@dataclass(frozen=True)
class Signature(Type):
    params: tuple[Type, ...] = ()
    results: tuple[Type, ...] = ()

    def result_type(self) -> Optional[Type]:
        """Return the call result type: None, the single result, or a Tuple."""
        if not self.results:
            return None
        if len(self.results) == 1:
            return self.results[0]
        return Tuple(self.results)


OPAQUE = Basic("?")
BOOL = Basic("bool")
NIL = Basic("nil")


def deref(t: Optional[Type]) -> Optional[Type]:
    """Strip exactly one level of pointer indirection."""
    if isinstance(t, Pointer):
        return t.elem
    return t


def named_of(t: Optional[Type]) -> Optional[Named]:
    """Return the Named type behind t (or *t), or None."""
    t = deref(t)
    if isinstance(t, Named):
        return t
    return None


@dataclass
class Scope:
    """Package-level symbol table: declared types and function signatures."""

    package_path: str
    types: dict[str, Named] = field(default_factory=dict)
    funcs: dict[str, Signature] = field(default_factory=dict)

    def lookup(self, name: str) -> Optional[Named]:
        return self.types.get(name)
