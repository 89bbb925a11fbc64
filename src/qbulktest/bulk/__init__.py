"""Bulk test running: scope enumeration, variant execution, progress hooks."""
from .environment import ExecutionEnvironment
from .progress import ProgressManager, ProgressSink
from .tester import BulkTester

__all__ = [
    "BulkTester",
    "ExecutionEnvironment",
    "ProgressManager",
    "ProgressSink",
]
