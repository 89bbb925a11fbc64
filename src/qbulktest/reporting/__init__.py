"""Reporting exports."""
from .html import HtmlReporter
from .json_reporter import JsonReporter
from .sections import SECTION_TITLES, preview_url
from .terminal import TerminalReporter

__all__ = [
    "HtmlReporter",
    "JsonReporter",
    "SECTION_TITLES",
    "TerminalReporter",
    "preview_url",
]
