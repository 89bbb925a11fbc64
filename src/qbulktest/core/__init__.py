"""Core models and helpers exposed at the package level."""
from .comparator import PrtComparison, TestResult, compare_test_case
from .models import (
    DEFAULT_SEED,
    Category,
    Context,
    ExpectedResult,
    InputDefinition,
    PrtBranch,
    PrtDefinition,
    PrtNode,
    PrtState,
    Question,
    TestCase,
    Tolerance,
    with_seed_override,
)
from .results import ReportEntry, RunReport, RunReportBuilder, SeedCacheResult, VariantResult

__all__ = [
    "DEFAULT_SEED",
    "Category",
    "Context",
    "ExpectedResult",
    "InputDefinition",
    "PrtBranch",
    "PrtComparison",
    "PrtDefinition",
    "PrtNode",
    "PrtState",
    "Question",
    "ReportEntry",
    "RunReport",
    "RunReportBuilder",
    "SeedCacheResult",
    "TestCase",
    "TestResult",
    "Tolerance",
    "VariantResult",
    "compare_test_case",
    "with_seed_override",
]
