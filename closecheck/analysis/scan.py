# Enumerates resource-typed values produced inside each function body.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from closecheck.ir.nodes import Call, Extract, Function, Value
from closecheck.registry import ResourceDescriptor, TypeRegistry
from closecheck.suppression import SuppressionFilter

if TYPE_CHECKING:
    from closecheck.loader import Package

logger = logging.getLogger(__name__)

# Operations that allocate a handle. Copies, field loads and free variables
# only alias a value produced elsewhere.
PRODUCING_KINDS = (Call, Extract)


@dataclass(frozen=True)
class Candidate:
    function: Function
    value: Value
    descriptor: ResourceDescriptor


def source_functions(package: "Package") -> Iterator[Function]:
    """Every function of the package, func literals included (pre-order)."""
    stack = list(reversed(package.functions))
    while stack:
        fn = stack.pop()
        yield fn
        stack.extend(reversed(fn.anon_funcs))


class ControlFlowScanner:
    """Single linear pass over a function's instructions; no recursion into callees."""

    def __init__(self, registry: TypeRegistry, suppression: SuppressionFilter) -> None:
        self.registry = registry
        self.suppression = suppression

    def candidates(self, fn: Function) -> Iterator[Candidate]:
        if not fn.filename:
            logger.debug("Skipping %s: no source file", fn.name)
            return
        if self.suppression.is_excluded_file(fn.filename):
            return
        for instr in fn.instructions():
            if not isinstance(instr, PRODUCING_KINDS):
                continue
            descriptor = self.registry.lookup(instr.type)
            if descriptor is not None:
                yield Candidate(fn, instr, descriptor)
