"""Question and test-case store interfaces consumed by the bulk tester and editor."""
from __future__ import annotations

from typing import Dict, List, Optional

from qbulktest.core import Category, Context, Question, TestCase


class QuestionStore:
    """Read access to questions plus read/write access to their stored tests.

    Implementations raise ``StoreUnavailable`` when the backing storage cannot
    be reached and ``QuestionNotFound`` for unknown identifiers.
    """

    def list_contexts(self) -> List[Context]:  # pragma: no cover - interface
        raise NotImplementedError

    def get_context(self, context_id: int) -> Context:  # pragma: no cover - interface
        raise NotImplementedError

    def questions_by_context(self) -> Dict[int, int]:  # pragma: no cover - interface
        """Context id -> number of STACK questions, for contexts that have any."""

        raise NotImplementedError

    def list_categories_in_scope(self, context: Context) -> List[Category]:  # pragma: no cover
        raise NotImplementedError

    def list_questions_by_category(self, category_id: int) -> Dict[int, str]:  # pragma: no cover
        """STACK question id -> name, ordered by name."""

        raise NotImplementedError

    def load_question(self, question_id: int) -> Question:  # pragma: no cover - interface
        raise NotImplementedError

    def load_test_cases(self, question_id: int) -> List[TestCase]:  # pragma: no cover
        raise NotImplementedError

    def load_test_case(self, question_id: int, testcase: int) -> TestCase:  # pragma: no cover
        raise NotImplementedError

    def save_test_case(
        self,
        question_id: int,
        case: TestCase,
        testcase: Optional[int] = None,
    ) -> int:  # pragma: no cover - interface
        """Persist ``case``; a new case gets the next free number, which is returned."""

        raise NotImplementedError
