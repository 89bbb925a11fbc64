"""Terminal reporter rendering progress and the overall summary."""
from __future__ import annotations

import time
from typing import Sequence

import click
from colorama import Fore, Style, init as colorama_init

from qbulktest.bulk.progress import ProgressSink
from qbulktest.core import Category, Context, Question, RunReport, VariantResult

from .sections import SECTION_TITLES


class TerminalReporter(ProgressSink):
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True, show_details: bool = True) -> None:
        self._use_color = use_color
        self._show_details = show_details
        self._start_time = 0.0
        self._variants = 0
        self._failed = 0

    def on_start(self, contexts: Sequence[Context]) -> None:
        if self._use_color:
            colorama_init()
        self._start_time = time.perf_counter()
        self._variants = 0
        self._failed = 0
        click.echo(self._styled(f"Starting bulk run over {len(contexts)} context(s)", Fore.CYAN))

    def on_context(self, context: Context) -> None:
        click.echo(self._styled(f"== {context.name} ==", Fore.CYAN))

    def on_category(self, category: Category, question_count: int) -> None:
        click.echo(f"{category.name} ({question_count} STACK question(s))")

    def on_upgrade_failure(self, question: Question, message: str) -> None:
        click.echo(f"  {question.name} -> {self._styled('UPGRADE', Fore.RED)}")
        click.echo(f"    {message}")

    def on_question(self, question: Question, problems: Sequence[str]) -> None:
        for problem in problems:
            click.echo(f"  {question.name}: {self._styled(SECTION_TITLES[problem].lower(), Fore.YELLOW)}")

    def on_variant_result(self, result: VariantResult) -> None:
        self._variants += 1
        status = "PASS" if result.passed else "FAIL"
        color = Fore.GREEN if result.passed else Fore.RED
        seed_text = f" seed={result.seed}" if result.seed is not None else ""
        ms = result.duration_s * 1000
        click.echo(
            f"  {result.question_name}{seed_text} -> {self._styled(status, color)} "
            f"({result.message}, {ms:.2f} ms)"
        )
        if result.passed:
            return
        self._failed += 1
        if self._show_details:
            self._print_failure_details(result)

    def on_complete(self, all_passed: bool, report: RunReport) -> None:
        duration = time.perf_counter() - self._start_time
        color = Fore.GREEN if all_passed else Fore.RED
        verdict = "All tests passed" if all_passed else "Some tests failed"
        click.echo(
            self._styled(
                f"Overall result: {verdict} variants={self._variants} "
                f"failed={self._failed} duration={duration:.2f}s",
                color,
            )
        )
        for name, entries in report.sections():
            click.echo(self._styled(f"{SECTION_TITLES[name]}:", Fore.YELLOW))
            for entry in entries:
                click.echo(f"  - {entry.label()}")

    def _styled(self, text: str, color: str) -> str:
        if not self._use_color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def _print_failure_details(self, result: VariantResult, *, indent: str = "    ") -> None:
        for error in result.errors:
            click.echo(f"{indent}error: {error}")
        for test in result.tests:
            if test.passed:
                continue
            click.echo(f"{indent}{test.case.identifier()} failed")
            for comparison in test.failed_prts():
                click.echo(f"{indent}  {comparison.prt}: {comparison.reason}")
