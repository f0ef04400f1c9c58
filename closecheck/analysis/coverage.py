"""
Coverage decision for a single candidate.

Rules, first match wins:

1. AUTO_RELEASED: a transaction produced by a zero-argument auto-releasing
   accessor (``client.Single()``), whether called on an interface or a
   concrete receiver. Such a transaction closes itself after first use.
2. RETURNED: an iterator that is one of the enclosing function's return
   values. The caller owns it from then on.
3. COVERED / UNCOVERED: covered only if a referrer of the value is a
   ``defer``, or a referrer is a call of the cleanup method on the value
   whose own referrers include a ``defer``.

Nothing else counts: a non-deferred cleanup call, a cleanup deferred through
a copy of the value, a value stored in a struct field, or a value handed to
a helper that defers the cleanup. The check never follows aliases and never
looks into callees.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence

from closecheck.analysis.scan import Candidate
from closecheck.ir.nodes import Call, Defer, Extract, Function, Position, Return, Value
from closecheck.registry import ResourceKind

logger = logging.getLogger(__name__)

AUTO_RELEASE_ACCESSORS: tuple[str, ...] = ("Single",)


class Verdict(str, Enum):
    COVERED = "covered"
    AUTO_RELEASED = "auto-released"
    RETURNED = "returned"
    UNCOVERED = "uncovered"

    @property
    def reportable(self) -> bool:
        return self is Verdict.UNCOVERED


def report_position(value: Value) -> Optional[Position]:
    """Position of the allocating call; for tuple elements, that of the tuple call."""
    if isinstance(value, Extract):
        return value.tuple.pos
    return value.pos


def has_deferred_cleanup(value: Value, cleanup_method: str) -> bool:
    for ref in value.referrers:
        if isinstance(ref, Defer):
            return True
        if (
            isinstance(ref, Call)
            and ref.common.receiver is value
            and ref.common.method_name == cleanup_method
            and any(isinstance(r, Defer) for r in ref.referrers)
        ):
            return True
    return False


def is_returned(fn: Function, value: Value) -> bool:
    for ref in value.referrers:
        if not isinstance(ref, Return) or ref.block not in fn.blocks:
            continue
        if any(result is value for result in ref.results):
            return True
    return False


class CoverageAnalyzer:
    def __init__(self, auto_release_accessors: Sequence[str] = AUTO_RELEASE_ACCESSORS) -> None:
        self.auto_release_accessors = tuple(auto_release_accessors)

    def is_auto_released(self, value: Value) -> bool:
        if not isinstance(value, Call):
            return False
        common = value.common
        return common.callee in self.auto_release_accessors and not common.args

    def evaluate(self, candidate: Candidate) -> Verdict:
        value, descriptor = candidate.value, candidate.descriptor
        if descriptor.kind is ResourceKind.TRANSACTION and self.is_auto_released(value):
            verdict = Verdict.AUTO_RELEASED
        elif descriptor.kind is ResourceKind.ITERATOR and is_returned(candidate.function, value):
            verdict = Verdict.RETURNED
        elif has_deferred_cleanup(value, descriptor.cleanup_method):
            verdict = Verdict.COVERED
        else:
            verdict = Verdict.UNCOVERED
        logger.debug(
            "%s in %s at %s: %s",
            descriptor.name,
            candidate.function.name,
            report_position(value),
            verdict.value,
        )
        return verdict
