"""Single test-case editor."""
from .testcase_editor import Preview, TestCaseEditor

__all__ = [
    "Preview",
    "TestCaseEditor",
]
