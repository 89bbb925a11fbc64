"""Bulk tester running every stored question test against every deployed variant."""
from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple

from qbulktest.core import (
    DEFAULT_SEED,
    Context,
    Question,
    ReportEntry,
    RunReport,
    RunReportBuilder,
    SeedCacheResult,
    TestCase,
    TestResult,
    Tolerance,
    VariantResult,
    compare_test_case,
    with_seed_override,
)
from qbulktest.engines import ADAPTIVE, DisplayOptions, EvaluationEngine, QuestionUsage
from qbulktest.errors import (
    EnvironmentFailure,
    EvaluationRuntimeError,
    StoreUnavailable,
    VersionIncompatible,
)
from qbulktest.store import QuestionStore

from .environment import ExecutionEnvironment
from .progress import ProgressSink

logger = logging.getLogger(__name__)

_FATAL = (StoreUnavailable, EnvironmentFailure)


class BulkTester:
    """Runs question tests across contexts and classifies the outcome."""

    def __init__(
        self,
        store: QuestionStore,
        engine: EvaluationEngine,
        *,
        environment: Optional[ExecutionEnvironment] = None,
        progress: Optional[ProgressSink] = None,
        tolerance: Optional[Tolerance] = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._environment = environment or ExecutionEnvironment()
        self._progress = progress or ProgressSink()
        self._tolerance = tolerance or Tolerance()

    def questions_by_context(self) -> Dict[int, int]:
        """Context id -> number of STACK questions, ordered by context path."""

        return self._store.questions_by_context()

    def contexts_in_scope(self) -> List[Context]:
        return [self._store.get_context(context_id) for context_id in self.questions_by_context()]

    def run_all_contexts(self) -> Tuple[bool, RunReport]:
        return self.run_contexts(self.contexts_in_scope())

    def run_contexts(self, contexts: Sequence[Context]) -> Tuple[bool, RunReport]:
        """Run several contexts as one run with a single merged report."""

        contexts = list(contexts)
        self._progress.on_start(contexts)
        all_passed = True
        report = RunReport()
        for context in contexts:
            passed, context_report = self._run_context(context)
            all_passed = all_passed and passed
            report = report.merge(context_report)
        self._progress.on_complete(all_passed, report)
        return all_passed, report

    def run_all_tests_for_context(self, context: Context) -> Tuple[bool, RunReport]:
        """Run all the tests for all variants of all STACK questions in ``context``.

        Returns whether everything passed, and the report of failing tests,
        questions without tests, questions without general feedback and
        questions that fail the version check.
        """

        self._progress.on_start([context])
        all_passed, report = self._run_context(context)
        self._progress.on_complete(all_passed, report)
        return all_passed, report

    def _run_context(self, context: Context) -> Tuple[bool, RunReport]:
        self._progress.on_context(context)
        builder = RunReportBuilder()
        all_passed = True
        for category in self._store.list_categories_in_scope(context):
            question_ids = self._store.list_questions_by_category(category.id)
            self._progress.on_category(category, len(question_ids))
            for question_id in question_ids:
                question = self._store.load_question(question_id)
                if not self._run_question(context, question, builder):
                    all_passed = False
        report = builder.build()
        logger.info(
            "Context %s finished: passed=%s failing=%d",
            context.name,
            all_passed,
            len(report.failingtests) + len(report.failingupgrades),
        )
        return all_passed, report

    def _run_question(self, context: Context, question: Question, builder: RunReportBuilder) -> bool:
        upgrade_errors = self.check_version(question)
        if upgrade_errors:
            logger.warning("Question %s fails the version check: %s", question.id, upgrade_errors)
            builder.add(
                "failingupgrades",
                ReportEntry(question.id, question.name, upgrade_errors, context=context),
            )
            self._progress.on_upgrade_failure(question, upgrade_errors)
            return False

        problems: List[str] = []
        if not question.generalfeedback.strip():
            builder.add("nogeneralfeedback", ReportEntry(question.id, question.name, context=context))
            problems.append("nogeneralfeedback")
        tests = self._store.load_test_cases(question.id)
        if not tests:
            builder.add("notests", ReportEntry(question.id, question.name, context=context))
            problems.append("notests")
        self._progress.on_question(question, problems)

        passed = True
        for seed in question.variant_seeds():
            cached = self.seed_cache(question, seed)
            if tests:
                result = self.execute_variant(question, tests, seed, context=context)
                result.errors = _merge_errors(cached.errors, result.errors)
            else:
                result = VariantResult(
                    question_id=question.id,
                    question_name=question.name,
                    seed=seed,
                    passes=0,
                    fails=0,
                    errors=cached.errors,
                    context=context,
                )
            self._progress.on_variant_result(result)
            if not result.passed:
                passed = False
                builder.add(
                    "failingtests",
                    ReportEntry(question.id, question.name, result.message, seed=seed, context=context),
                )
        return passed

    def check_version(self, question: Question) -> str:
        """Return the upgrade diagnostic for ``question``, or an empty string."""

        try:
            return self._engine.validate_version(question) or ""
        except VersionIncompatible as exc:
            return str(exc) or "Question needs upgrading."

    def test_question(
        self,
        question: Question,
        tests: Sequence[TestCase],
        seed: Optional[int] = None,
    ) -> Tuple[bool, str]:
        """Run the tests for one variant; returns (passed, "passes=N,fails=M...")."""

        result = self.execute_variant(question, tests, seed)
        return result.passed, result.message

    def execute_variant(
        self,
        question: Question,
        tests: Sequence[TestCase],
        seed: Optional[int] = None,
        *,
        context: Optional[Context] = None,
    ) -> VariantResult:
        self._environment.before_variant()
        start = time.perf_counter()
        variant = with_seed_override(question, seed) if seed is not None else question
        errors: Dict[str, None] = {}
        results: List[TestResult] = []
        passes = 0
        fails = 0
        usage: Optional[QuestionUsage] = None
        try:
            usage = self._engine.instantiate(variant, behaviour=ADAPTIVE)
            for case in tests:
                try:
                    actual = self._engine.evaluate_prts(usage, case.inputs)
                except EvaluationRuntimeError as exc:
                    errors[exc.key] = None
                    fails += 1
                    continue
                result = compare_test_case(case, actual, seed=seed, tolerance=self._tolerance)
                results.append(result)
                if result.passed:
                    passes += 1
                else:
                    fails += 1
            self._engine.question_summary(usage)
            self._engine.general_feedback(usage)
        except _FATAL:
            raise
        except EvaluationRuntimeError as exc:
            errors[exc.key] = None
        except Exception as exc:
            logger.exception("Engine failed on question %s seed %s", question.id, seed)
            errors[f"{type(exc).__name__}: {exc}"] = None
        if usage is not None:
            errors = dict.fromkeys(list(usage.runtime_errors) + list(errors))
        duration = time.perf_counter() - start
        self._environment.after_variant()
        outcome = VariantResult(
            question_id=question.id,
            question_name=question.name,
            seed=seed,
            passes=passes,
            fails=fails,
            errors=tuple(errors),
            context=context,
            tests=results,
            duration_s=duration,
        )
        logger.debug("Question %s seed %s: %s", question.id, seed, outcome.message)
        return outcome

    def seed_cache(self, question: Question, seed: Optional[int] = None) -> SeedCacheResult:
        """Instantiate one variant so its render, worked solution and note are evaluated.

        This seeds the engine caches and surfaces evaluation errors even for
        questions without stored tests. The implicit seed caches variant 0.
        """

        self._environment.before_variant()
        variant = with_seed_override(question, DEFAULT_SEED if seed is None else seed)
        errors: Dict[str, None] = {}
        outcome = SeedCacheResult(seed=seed)
        usage: Optional[QuestionUsage] = None
        try:
            usage = self._engine.instantiate(variant, behaviour=ADAPTIVE)
            outcome.rendered = self._engine.render(usage, DisplayOptions())
            outcome.general_feedback = self._engine.general_feedback(usage)
            outcome.summary = self._engine.question_summary(usage)
        except _FATAL:
            raise
        except EvaluationRuntimeError as exc:
            errors[exc.key] = None
        except Exception as exc:
            logger.exception("Engine failed seeding question %s seed %s", question.id, seed)
            errors[f"{type(exc).__name__}: {exc}"] = None
        if usage is not None:
            errors = dict.fromkeys(list(usage.runtime_errors) + list(errors))
        outcome.errors = tuple(errors)
        self._environment.after_variant()
        return outcome


def _merge_errors(first: Sequence[str], second: Sequence[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(list(first) + list(second)))
