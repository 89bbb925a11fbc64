"""Progress sink interface for bulk runs."""
from __future__ import annotations

from typing import List, Sequence

from qbulktest.core import Category, Context, Question, RunReport, VariantResult


class ProgressSink:
    """Receives bulk-run events as they happen; every hook defaults to a no-op."""

    def on_start(self, contexts: Sequence[Context]) -> None:
        pass

    def on_context(self, context: Context) -> None:
        pass

    def on_category(self, category: Category, question_count: int) -> None:
        pass

    def on_upgrade_failure(self, question: Question, message: str) -> None:
        pass

    def on_question(self, question: Question, problems: Sequence[str]) -> None:
        """``problems`` holds the diagnostic section names raised for the question."""

    def on_variant_result(self, result: VariantResult) -> None:
        pass

    def on_complete(self, all_passed: bool, report: RunReport) -> None:
        pass


class ProgressManager(ProgressSink):
    """Dispatches lifecycle callbacks to multiple sinks."""

    def __init__(self, sinks: Sequence[ProgressSink] = ()) -> None:
        self._sinks = list(sinks)

    def add(self, sink: ProgressSink) -> None:
        self._sinks.append(sink)

    def sinks(self) -> List[ProgressSink]:
        return list(self._sinks)

    def on_start(self, contexts: Sequence[Context]) -> None:
        for sink in self._sinks:
            sink.on_start(contexts)

    def on_context(self, context: Context) -> None:
        for sink in self._sinks:
            sink.on_context(context)

    def on_category(self, category: Category, question_count: int) -> None:
        for sink in self._sinks:
            sink.on_category(category, question_count)

    def on_upgrade_failure(self, question: Question, message: str) -> None:
        for sink in self._sinks:
            sink.on_upgrade_failure(question, message)

    def on_question(self, question: Question, problems: Sequence[str]) -> None:
        for sink in self._sinks:
            sink.on_question(question, problems)

    def on_variant_result(self, result: VariantResult) -> None:
        for sink in self._sinks:
            sink.on_variant_result(result)

    def on_complete(self, all_passed: bool, report: RunReport) -> None:
        for sink in self._sinks:
            sink.on_complete(all_passed, report)
