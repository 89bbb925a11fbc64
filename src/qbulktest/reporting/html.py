"""HTML reporter writing the bulk-test page incrementally."""
from __future__ import annotations

from html import escape
from typing import IO, Optional, Sequence

from qbulktest.bulk.progress import ProgressSink
from qbulktest.core import Category, Context, Question, ReportEntry, RunReport, VariantResult

from .sections import DEFAULT_INDEX_URL, DEFAULT_PREVIEW_URL, SECTION_TITLES, preview_url


class HtmlReporter(ProgressSink):
    """Streams headings and pass/fail paragraphs, flushing after each variant."""

    def __init__(
        self,
        stream: IO[str],
        *,
        base_url: str = DEFAULT_PREVIEW_URL,
        index_url: str = DEFAULT_INDEX_URL,
        title: str = "STACK question tests",
    ) -> None:
        self._stream = stream
        self._base_url = base_url
        self._index_url = index_url
        self._title = title

    def on_start(self, contexts: Sequence[Context]) -> None:
        self._write(
            '<!DOCTYPE html>\n<html><head><meta charset="utf-8" />'
            f"<title>{escape(self._title)}</title></head><body>\n"
            f"<h1>{escape(self._title)}</h1>\n"
        )

    def on_context(self, context: Context) -> None:
        self._write(f"<h2>{escape(context.name)}</h2>\n")

    def on_category(self, category: Category, question_count: int) -> None:
        self._write(f"<h3>{escape(category.name)}</h3>\n")
        if question_count:
            self._write(f"<p>This category contains {question_count} STACK question(s).</p>\n")

    def on_upgrade_failure(self, question: Question, message: str) -> None:
        self._write(f"<h4>{self._link(question.id, question.name)}</h4>\n")
        self._write(f'<p class="fail">{escape(message)}</p>\n')

    def on_question(self, question: Question, problems: Sequence[str]) -> None:
        if problems:
            self._write(f"<h4>{self._link(question.id, question.name)}</h4>\n<ul>\n")
            for problem in problems:
                self._write(f"<li>{escape(SECTION_TITLES[problem])}</li>\n")
            self._write("</ul>\n")
        if question.deployedseeds:
            self._write(f"<h4>{escape(question.name)}</h4>\n")

    def on_variant_result(self, result: VariantResult) -> None:
        text = result.question_name if result.seed is None else f"Seed {result.seed}"
        self._write(f"<h4>{self._link(result.question_id, text, result.seed)}</h4>\n")
        css = "pass" if result.passed else "fail"
        flag = "* " if result.passed else ""
        self._write(f'<p class="{css}">{escape(flag + result.message)}</p>\n')
        self._stream.flush()

    def on_complete(self, all_passed: bool, report: RunReport) -> None:
        self._write("<h2>Overall result</h2>\n")
        if all_passed:
            self._write('<p class="overallresult pass">All tests passed.</p>\n')
        else:
            self._write('<p class="overallresult fail">Some tests failed.</p>\n')
        for name, entries in report.sections():
            self._write(f"<h3>{escape(SECTION_TITLES[name])}</h3>\n<ul>\n")
            for entry in entries:
                self._write(f"<li>{self._entry(entry)}</li>\n")
            self._write("</ul>\n")
        self._write(f'<p><a href="{escape(self._index_url)}">Back</a></p>\n</body></html>\n')
        self._stream.flush()

    def _entry(self, entry: ReportEntry) -> str:
        parts = []
        if entry.context is not None:
            parts.append(escape(entry.context.name))
        parts.append(self._link(entry.question_id, entry.question_name, entry.seed))
        if entry.seed is not None:
            parts.append(f"seed {entry.seed}")
        text = " ".join(parts)
        if entry.message:
            text += f": {escape(entry.message)}"
        return text

    def _link(self, question_id: int, text: str, seed: Optional[int] = None) -> str:
        url = preview_url(self._base_url, question_id, seed)
        return f'<a href="{escape(url)}">{escape(text)}</a>'

    def _write(self, text: str) -> None:
        self._stream.write(text)
