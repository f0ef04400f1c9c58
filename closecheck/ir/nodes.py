"""
Def-use representation of Go function bodies.

A Function owns an ordered list of BasicBlocks, each holding Instructions.
Instructions that produce a result are also Values. Every Value keeps the
list of Instructions that consume it (its referrers), so the graph can be
walked from a definition to all of its use sites without any dataflow pass.

Instruction kinds:
    Call         call returning zero, one or a tuple of results
    Extract      element i of a tuple-returning Call, e.g. ``txn, err := f()``
    MakeClosure  a func literal with captured outer values
    Copy         plain ``y := x`` rebinding (an alias of x)
    Operation    any other expression (field load, composite literal, ...)
    Defer        ``defer <call>``
    Go           ``go <call>``
    Return       ``return a, b``
    Store        assignment into a field, index or pointer target
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from closecheck.ir.types import Signature, Type


@dataclass(frozen=True)
class Position:
    """Source position of an instruction (1-based line and column)."""

    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


class Value:
    """Anything that can appear as an operand."""

    def __init__(self, name: str, type: Optional[Type], pos: Optional[Position] = None) -> None:
        self.name = name
        self.type = type
        self.pos = pos
        self.referrers: list[Instruction] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


class Parameter(Value):
    pass


class FreeVar(Value):
    """A value captured by a func literal from its enclosing function."""

    def __init__(self, name: str, type: Optional[Type], outer: Value) -> None:
        super().__init__(name, type, outer.pos)
        self.outer = outer


class Const(Value):
    """Literal, nil, package-level name, or anything else without a def site."""


class Instruction:
    """Base class for everything stored in a BasicBlock."""

    pos: Optional[Position] = None
    block: Optional["BasicBlock"] = None

    def operands(self) -> Sequence[Value]:
        return ()

    def _link(self) -> None:
        for op in self.operands():
            op.referrers.append(self)


class CallCommon:
    """
    The callee and arguments shared by Call, Defer and Go.

    ``callee`` is the bare function or method name (``Close``, ``Single``).
    For method calls ``receiver`` is the receiver value; ``invoke`` is True
    when the receiver's static type is an interface (dynamic dispatch).
    ``func`` is set when the callee is itself a value (closure, func var).
    """

    def __init__(
        self,
        callee: str,
        args: Sequence[Value] = (),
        receiver: Optional[Value] = None,
        invoke: bool = False,
        func: Optional[Value] = None,
        signature: Optional[Signature] = None,
    ) -> None:
        self.callee = callee
        self.args = list(args)
        self.receiver = receiver
        self.invoke = invoke
        self.func = func
        self.signature = signature

    @property
    def method_name(self) -> Optional[str]:
        """The method name if this is a method call, otherwise None."""
        if self.receiver is None:
            return None
        return self.callee

    def values(self) -> list[Value]:
        vals: list[Value] = []
        if self.func is not None:
            vals.append(self.func)
        if self.receiver is not None:
            vals.append(self.receiver)
        vals.extend(self.args)
        return vals


class Call(Instruction, Value):
    def __init__(self, common: CallCommon, type: Optional[Type], pos: Optional[Position]) -> None:
        Value.__init__(self, common.callee, type, pos)
        self.common = common
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return self.common.values()


class Extract(Instruction, Value):
    """Element ``index`` of a tuple-valued Call. Has no position of its own."""

    def __init__(self, tuple: Call, index: int, type: Optional[Type]) -> None:
        Value.__init__(self, f"extract #{index}", type, None)
        self.tuple = tuple
        self.index = index
        self.pos = None
        self._link()

    def operands(self) -> Sequence[Value]:
        return (self.tuple,)


class MakeClosure(Instruction, Value):
    def __init__(self, fn: "Function", bindings: Sequence[Value], pos: Optional[Position]) -> None:
        Value.__init__(self, fn.name, fn.type, pos)
        self.fn = fn
        self.bindings = list(bindings)
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return self.bindings


class Copy(Instruction, Value):
    def __init__(self, name: str, source: Value, pos: Optional[Position]) -> None:
        Value.__init__(self, name, source.type, pos)
        self.source = source
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return (self.source,)


class Operation(Instruction, Value):
    def __init__(
        self,
        op: str,
        args: Iterable[Value],
        type: Optional[Type],
        pos: Optional[Position],
    ) -> None:
        Value.__init__(self, op, type, pos)
        self.op = op
        self.args = list(args)
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return self.args


class Defer(Instruction):
    def __init__(self, common: CallCommon, pos: Optional[Position]) -> None:
        self.common = common
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return self.common.values()


class Go(Instruction):
    def __init__(self, common: CallCommon, pos: Optional[Position]) -> None:
        self.common = common
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return self.common.values()


class Return(Instruction):
    def __init__(self, results: Sequence[Value], pos: Optional[Position]) -> None:
        self.results = list(results)
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        return self.results


class Store(Instruction):
    """``<target> = value`` where target is a field, element or pointee."""

    def __init__(
        self,
        target: str,
        value: Value,
        base: Optional[Value],
        pos: Optional[Position],
    ) -> None:
        self.target = target
        self.value = value
        self.base = base
        self.pos = pos
        self._link()

    def operands(self) -> Sequence[Value]:
        if self.base is None:
            return (self.value,)
        return (self.base, self.value)


class BasicBlock:
    def __init__(self, index: int, comment: str = "") -> None:
        self.index = index
        self.comment = comment
        self.instrs: list[Instruction] = []
        self.preds: list[BasicBlock] = []
        self.succs: list[BasicBlock] = []

    def append(self, instr: Instruction) -> Instruction:
        instr.block = self
        self.instrs.append(instr)
        return instr

    def __repr__(self) -> str:
        return f"BasicBlock({self.index}:{self.comment})"


def add_edge(src: BasicBlock, dst: BasicBlock) -> None:
    src.succs.append(dst)
    dst.preds.append(src)


class Function(Value):
    """A function, method or func literal; also usable as a value."""

    def __init__(
        self,
        name: str,
        signature: Optional[Signature] = None,
        filename: str = "",
        pos: Optional[Position] = None,
        parent: Optional["Function"] = None,
    ) -> None:
        super().__init__(name, signature, pos)
        self.filename = filename
        self.parent = parent
        self.params: list[Parameter] = []
        self.free_vars: list[FreeVar] = []
        self.blocks: list[BasicBlock] = []
        self.anon_funcs: list[Function] = []

    def new_block(self, comment: str = "") -> BasicBlock:
        block = BasicBlock(len(self.blocks), comment)
        self.blocks.append(block)
        return block

    def instructions(self) -> Iterable[Instruction]:
        """All instructions in block order, then document order."""
        for block in self.blocks:
            yield from block.instrs
