"""Utilities for comparing actual PRT outcomes with a test case's expectations."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import numpy as np

from .models import ExpectedResult, PrtState, TestCase, Tolerance


@dataclass
class PrtComparison:
    """Per-PRT comparison outcome."""

    prt: str
    passed: bool
    expected: ExpectedResult
    actual: Optional[PrtState] = None
    reason: Optional[str] = None


@dataclass
class TestResult:
    """Aggregated comparison outcome for a test case against one variant."""

    __test__ = False

    case: TestCase
    passed: bool
    seed: Optional[int] = None
    prts: List[PrtComparison] = field(default_factory=list)

    def failed_prts(self) -> List[PrtComparison]:
        return [item for item in self.prts if not item.passed]


def compare_test_case(
    case: TestCase,
    actual: Mapping[str, PrtState],
    *,
    seed: Optional[int] = None,
    tolerance: Optional[Tolerance] = None,
) -> TestResult:
    """Compare every PRT named by ``case`` with the actual outcome.

    A single mismatching PRT fails the whole test case.
    """

    tolerance = tolerance or Tolerance()
    comparisons: list[PrtComparison] = []
    overall_passed = True
    for prtname, expected in case.expected.items():
        state = actual.get(prtname)
        if state is None:
            comparisons.append(
                PrtComparison(prt=prtname, passed=False, expected=expected, reason="prt missing")
            )
            overall_passed = False
            continue
        reason = _mismatch_reason(expected, state, tolerance)
        comparisons.append(
            PrtComparison(
                prt=prtname,
                passed=reason is None,
                expected=expected,
                actual=state,
                reason=reason,
            )
        )
        if reason is not None:
            overall_passed = False
    return TestResult(case=case, passed=overall_passed, seed=seed, prts=comparisons)


def _mismatch_reason(expected: ExpectedResult, actual: PrtState, tolerance: Tolerance) -> Optional[str]:
    problems = []
    if not _values_match(expected.score, actual.score, tolerance):
        problems.append(f"score expected {_fmt(expected.score)} got {_fmt(actual.score)}")
    if not _values_match(expected.penalty, actual.penalty, tolerance):
        problems.append(f"penalty expected {_fmt(expected.penalty)} got {_fmt(actual.penalty)}")
    if expected.answernote.strip() != actual.answernote.strip():
        problems.append(f"answernote expected {expected.answernote!r} got {actual.answernote!r}")
    if not problems:
        return None
    return "; ".join(problems)


def _values_match(expected: Optional[float], actual: Optional[float], tolerance: Tolerance) -> bool:
    if expected is None or actual is None:
        return expected is None and actual is None
    return bool(np.isclose(actual, expected, rtol=0.0, atol=tolerance.absolute))


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "NULL"
    return f"{value:g}"
