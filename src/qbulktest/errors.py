"""Exception hierarchy shared across qbulktest subsystems.

Per-question failures (``VersionIncompatible``, ``EvaluationRuntimeError``) are
folded into the run report by the bulk tester. Infrastructure failures
(``StoreUnavailable``, ``EnvironmentFailure``) are never caught internally and
abort the run.
"""
from __future__ import annotations


class QBulkTestError(Exception):
    """Base class for all qbulktest errors."""


class VersionIncompatible(QBulkTestError):
    """The question predates the engine version it must be upgraded to."""


class EvaluationRuntimeError(QBulkTestError):
    """Raised by an engine while instantiating, rendering or scoring a variant."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key


class StoreUnavailable(QBulkTestError):
    """The question / test-case store cannot be read or written."""


class EnvironmentFailure(QBulkTestError):
    """The execution environment cannot honour the run (e.g. time budget)."""


class QuestionNotFound(QBulkTestError, LookupError):
    """No question (or test case) with the requested identifier."""


class BankValidationError(QBulkTestError, ValueError):
    """A question bank file does not match the bank schema."""


class TestCaseFormError(QBulkTestError, ValueError):
    """Posted editor data cannot be turned into a test case."""

    __test__ = False


class ConfigError(QBulkTestError, ValueError):
    """Invalid configuration file or environment value."""
