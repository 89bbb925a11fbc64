"""Create or edit one stored question test and preview the question it belongs to."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from qbulktest.core import ExpectedResult, TestCase
from qbulktest.engines import ADAPTIVE, DisplayOptions, EvaluationEngine
from qbulktest.store import QuestionStore

logger = logging.getLogger(__name__)


@dataclass
class Preview:
    """Read-only view of a question variant shown next to the test form."""

    title: str
    question_id: int
    seed: int
    rendered: str
    questiontext: str
    variables: Dict[str, str] = field(default_factory=dict)
    runtime_errors: tuple = tuple()


class TestCaseEditor:
    """Thin persistence layer behind the single test-case form."""

    __test__ = False

    def __init__(self, store: QuestionStore, engine: EvaluationEngine) -> None:
        self._store = store
        self._engine = engine

    def load_test_case(self, question_id: int, testcase: int) -> TestCase:
        return self._store.load_test_case(question_id, testcase)

    def blank_test_case(self, question_id: int) -> TestCase:
        question = self._store.load_question(question_id)
        return TestCase(
            inputs={name: "" for name in question.inputs},
            expected={name: ExpectedResult(score=None, penalty=None, answernote="") for name in question.prts},
        )

    def form_data(self, question_id: int, testcase: Optional[int] = None) -> Dict[str, Any]:
        if testcase is None:
            return self.blank_test_case(question_id).to_form()
        return self.load_test_case(question_id, testcase).to_form()

    def title(self, question_id: int, testcase: Optional[int] = None) -> str:
        question = self._store.load_question(question_id)
        if testcase is None:
            return f"Adding a test case to question {question.name}"
        return f"Editing test case {testcase} for question {question.name}"

    def submit(self, question_id: int, data: Mapping[str, Any], testcase: Optional[int] = None) -> int:
        """Build a test case from posted form data and persist it."""

        question = self._store.load_question(question_id)
        case = TestCase.from_form(question, data, testcase=testcase)
        saved = self._store.save_test_case(question_id, case, testcase)
        logger.debug("Question %s: stored test case %s", question_id, saved)
        return saved

    def cancel(self) -> None:
        return None

    def preview(self, question_id: int, seed: Optional[int] = None, testcase: Optional[int] = None) -> Preview:
        question = self._store.load_question(question_id)
        usage = self._engine.instantiate(question, seed, behaviour=ADAPTIVE)
        rendered = self._engine.render(usage, DisplayOptions())
        return Preview(
            title=self.title(question_id, testcase),
            question_id=question.id,
            seed=usage.seed,
            rendered=rendered,
            questiontext=question.questiontext,
            variables=self._engine.question_variables(usage),
            runtime_errors=tuple(usage.runtime_errors),
        )
