from __future__ import annotations

import io
import json

import pytest
from jsonschema import ValidationError

from qbulktest.core import (
    Category,
    Context,
    ExpectedResult,
    PrtState,
    Question,
    ReportEntry,
    RunReport,
    RunReportBuilder,
    TestCase,
    VariantResult,
)
from qbulktest.core.comparator import compare_test_case
from qbulktest.core.results import format_summary
from qbulktest.reporting import HtmlReporter, JsonReporter, TerminalReporter, preview_url
from qbulktest.reporting.json_reporter import build_payload

CONTEXT = Context(id=1, name="Algebra", path="/a")
CATEGORY = Category(id=10, context_id=1, name="Arithmetic")
QUESTION = Question(id=101, name="Add <two>", category=10, deployedseeds=(4,))


def _failing_result() -> VariantResult:
    case = TestCase(
        inputs={"ans1": "1"},
        expected={"prt1": ExpectedResult(score=1.0, penalty=0.0, answernote="prt1-1-T")},
        testcase=2,
    )
    actual = {"prt1": PrtState(score=0.0, penalty=0.1, answernotes=("prt1-1-F",))}
    return VariantResult(
        question_id=101,
        question_name="Add <two>",
        seed=4,
        passes=0,
        fails=1,
        errors=("CASText: bad",),
        context=CONTEXT,
        tests=[compare_test_case(case, actual, seed=4)],
    )


def _report() -> RunReport:
    builder = RunReportBuilder()
    builder.add("failingupgrades", ReportEntry(103, "Old", "Re-save it.", context=CONTEXT))
    builder.add("failingtests", ReportEntry(101, "Add <two>", "passes=0,fails=1", seed=4, context=CONTEXT))
    builder.add("notests", ReportEntry(102, "Square", context=CONTEXT))
    return builder.build()


def test_format_summary() -> None:
    assert format_summary(3, 0) == "passes=3,fails=0"
    assert format_summary(0, 1, ["a", "b"]) == "passes=0,fails=1; runtime errors: a b"


def test_report_sections_keep_fixed_order() -> None:
    report = _report()
    assert [name for name, _ in report.sections()] == ["failingtests", "notests", "failingupgrades"]
    assert not report.is_empty()
    assert RunReport().is_empty()
    merged = report.merge(report)
    assert len(merged.failingtests) == 2
    with pytest.raises(KeyError):
        RunReportBuilder().add("unknown", ReportEntry(1, "Q"))


def test_preview_url() -> None:
    assert preview_url("questiontestrun.php", 5) == "questiontestrun.php?questionid=5"
    assert preview_url("run.php?course=2", 5, 9) == "run.php?course=2&questionid=5&seed=9"


def test_terminal_reporter_prints_summary(capsys) -> None:
    reporter = TerminalReporter(use_color=False)
    reporter.on_start([CONTEXT])
    reporter.on_context(CONTEXT)
    reporter.on_category(CATEGORY, 1)
    reporter.on_question(QUESTION, ["notests"])
    reporter.on_variant_result(_failing_result())
    reporter.on_complete(False, _report())
    out = capsys.readouterr().out
    assert "Starting bulk run over 1 context(s)" in out
    assert "== Algebra ==" in out
    assert "Arithmetic (1 STACK question(s))" in out
    assert "Add <two>: no tests" in out
    assert "Add <two> seed=4 -> FAIL (passes=0,fails=1; runtime errors: CASText: bad" in out
    assert "error: CASText: bad" in out
    assert "test2 failed" in out
    assert "prt1: score expected 1 got 0" in out
    assert "Overall result: Some tests failed variants=1 failed=1" in out
    assert out.index("Failing tests:") < out.index("No tests:") < out.index("Failing upgrade checks:")
    assert "No general feedback:" not in out


def test_html_reporter_streams_page() -> None:
    stream = io.StringIO()
    reporter = HtmlReporter(stream, base_url="run.php", index_url="index.php")
    reporter.on_start([CONTEXT])
    reporter.on_context(CONTEXT)
    reporter.on_category(CATEGORY, 2)
    reporter.on_upgrade_failure(Question(id=103, name="Old", category=10), "Re-save it.")
    reporter.on_question(QUESTION, ["nogeneralfeedback"])
    passing = VariantResult(question_id=101, question_name="Add <two>", seed=None, passes=2, fails=0)
    reporter.on_variant_result(passing)
    reporter.on_variant_result(_failing_result())
    reporter.on_complete(False, _report())
    page = stream.getvalue()
    assert "<h2>Algebra</h2>" in page
    assert "<h3>Arithmetic</h3>" in page
    assert "This category contains 2 STACK question(s)." in page
    assert '<p class="fail">Re-save it.</p>' in page
    assert "<li>No general feedback</li>" in page
    assert '<h4><a href="run.php?questionid=101">Add &lt;two&gt;</a></h4>' in page
    assert '<p class="pass">* passes=2,fails=0</p>' in page
    assert '<a href="run.php?questionid=101&amp;seed=4">Seed 4</a>' in page
    assert '<p class="overallresult fail">Some tests failed.</p>' in page
    assert page.index("<h3>Failing tests</h3>") < page.index("<h3>No tests</h3>")
    assert page.rstrip().endswith('<p><a href="index.php">Back</a></p>\n</body></html>'.rstrip())


def test_json_reporter_writes_file(tmp_path) -> None:
    path = tmp_path / "out" / "report.json"
    reporter = JsonReporter(path=str(path))
    reporter.on_start([CONTEXT])
    reporter.on_variant_result(_failing_result())
    reporter.on_complete(False, _report())
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["summary"]["variants"] == 1
    assert payload["summary"]["failed"] == 1
    assert payload["variants"][0]["tests"][0]["prts"][0]["passed"] is False
    assert payload["report"]["notests"][0]["question_id"] == 102
    assert payload["report"]["nogeneralfeedback"] == []
    assert payload["generated_at"].endswith("Z")


def test_json_reporter_echoes_without_path(capsys) -> None:
    reporter = JsonReporter()
    reporter.on_start([])
    reporter.on_complete(True, RunReport())
    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"]["all_passed"] is True


def test_payload_is_validated() -> None:
    with pytest.raises(ValidationError):
        build_payload([{"question_id": "x", "passed": True}], True, RunReport(), 0.0)
