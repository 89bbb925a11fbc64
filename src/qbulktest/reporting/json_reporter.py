"""JSON reporter emitting structured bulk-run results."""
from __future__ import annotations

import datetime as dt
import json
import pathlib
import time
from typing import Any, Dict, Optional, Sequence

import click
from jsonschema import validate

from qbulktest.bulk.progress import ProgressSink
from qbulktest.core import Context, ReportEntry, RunReport, VariantResult

from .schema import JSON_SCHEMA_V1, SCHEMA_VERSION


class JsonReporter(ProgressSink):
    """Writes results to a JSON file (or stdout) validated against the schema."""

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = pathlib.Path(path) if path else None
        self._records: list[Dict[str, Any]] = []
        self._start_time = 0.0

    def on_start(self, contexts: Sequence[Context]) -> None:
        self._records.clear()
        self._start_time = time.perf_counter()

    def on_variant_result(self, result: VariantResult) -> None:
        self._records.append(_variant_to_dict(result))

    def on_complete(self, all_passed: bool, report: RunReport) -> None:
        payload = build_payload(self._records, all_passed, report, time.perf_counter() - self._start_time)
        text = json.dumps(payload, indent=2)
        if self._path is None:
            click.echo(text)
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(text, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem protection
            raise RuntimeError(f"Failed to write JSON report to {self._path}: {exc}") from exc
        click.echo(f"JSON report written to {self._path}", err=True)


def build_payload(
    records: Sequence[Dict[str, Any]],
    all_passed: bool,
    report: RunReport,
    duration: float,
) -> Dict[str, Any]:
    passed = sum(1 for record in records if record["passed"])
    payload = {
        "schema_version": SCHEMA_VERSION,
        "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "summary": {
            "all_passed": all_passed,
            "variants": len(records),
            "passed": passed,
            "failed": len(records) - passed,
            "duration_s": duration,
        },
        "variants": list(records),
        "report": {
            name: [_entry_to_dict(entry) for entry in entries]
            for name, entries in report.as_dict().items()
        },
    }
    validate(instance=payload, schema=JSON_SCHEMA_V1)
    return payload


def _variant_to_dict(result: VariantResult) -> Dict[str, Any]:
    return {
        "question_id": result.question_id,
        "question": result.question_name,
        "context": result.context.name if result.context else None,
        "seed": result.seed,
        "passed": result.passed,
        "passes": result.passes,
        "fails": result.fails,
        "errors": list(result.errors),
        "message": result.message,
        "duration_ms": result.duration_s * 1000,
        "tests": [
            {
                "testcase": test.case.testcase,
                "passed": test.passed,
                "prts": [
                    {"prt": item.prt, "passed": item.passed, "reason": item.reason}
                    for item in test.prts
                ],
            }
            for test in result.tests
        ],
    }


def _entry_to_dict(entry: ReportEntry) -> Dict[str, Any]:
    return {
        "question_id": entry.question_id,
        "question": entry.question_name,
        "context": entry.context.name if entry.context else None,
        "seed": entry.seed,
        "message": entry.message,
        "label": entry.label(),
    }
