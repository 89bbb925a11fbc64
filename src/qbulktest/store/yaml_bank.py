"""YAML-file question bank implementing the store contracts."""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from qbulktest.core import (
    Category,
    Context,
    ExpectedResult,
    InputDefinition,
    PrtBranch,
    PrtDefinition,
    PrtNode,
    Question,
    TestCase,
)
from qbulktest.errors import BankValidationError, QuestionNotFound, StoreUnavailable

from .base import QuestionStore
from .schema import bank_validator

logger = logging.getLogger(__name__)


def load_bank(path: str | Path) -> "YamlQuestionBank":
    """Load and validate a bank file; test-case saves are written back to it."""

    bank_path = Path(path).expanduser().resolve()
    try:
        text = bank_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreUnavailable(f"Cannot read question bank {bank_path}: {exc}") from exc
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise BankValidationError(f"Question bank {bank_path} is not valid YAML: {exc}") from exc
    return YamlQuestionBank.from_mapping(raw, path=bank_path)


class YamlQuestionBank(QuestionStore):
    """In-memory question bank backed by an optional YAML file."""

    def __init__(self, raw: Dict[str, Any], path: Optional[Path] = None) -> None:
        self._raw = raw
        self._path = path
        self._contexts: Dict[int, Context] = {}
        self._categories: Dict[int, Category] = {}
        self._questions: Dict[int, Question] = {}
        self._raw_questions: Dict[int, Dict[str, Any]] = {}
        self._index()

    @classmethod
    def from_mapping(cls, raw: Any, *, path: Optional[Path] = None) -> "YamlQuestionBank":
        if not isinstance(raw, Mapping):
            raise BankValidationError("Question bank must contain a mapping at the top level")
        errors = sorted(bank_validator.iter_errors(raw), key=lambda e: list(e.path))
        if errors:
            messages = "; ".join(
                f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors
            )
            raise BankValidationError(f"Bank schema validation failed: {messages}")
        return cls(copy.deepcopy(dict(raw)), path=path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def list_contexts(self) -> List[Context]:
        return sorted(self._contexts.values(), key=lambda ctx: (ctx.path, ctx.id))

    def get_context(self, context_id: int) -> Context:
        try:
            return self._contexts[context_id]
        except KeyError as exc:
            raise QuestionNotFound(f"Context {context_id} does not exist") from exc

    def questions_by_context(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for context in self.list_contexts():
            total = sum(
                len(self.list_questions_by_category(category.id))
                for category in self.list_categories_in_scope(context)
            )
            if total:
                counts[context.id] = total
        return counts

    def list_categories_in_scope(self, context: Context) -> List[Category]:
        categories = [cat for cat in self._categories.values() if cat.context_id == context.id]
        return sorted(categories, key=lambda cat: (cat.path, cat.name, cat.id))

    def list_questions_by_category(self, category_id: int) -> Dict[int, str]:
        questions = [
            question
            for question in self._questions.values()
            if question.category == category_id and question.is_stack
        ]
        questions.sort(key=lambda question: (question.name, question.id))
        return {question.id: question.name for question in questions}

    def load_question(self, question_id: int) -> Question:
        try:
            return self._questions[question_id]
        except KeyError as exc:
            raise QuestionNotFound(f"Question {question_id} does not exist") from exc

    def load_test_cases(self, question_id: int) -> List[TestCase]:
        raw_question = self._raw_question(question_id)
        cases = [_parse_test(entry) for entry in raw_question.get("tests", []) or []]
        return sorted(cases, key=lambda case: case.testcase or 0)

    def load_test_case(self, question_id: int, testcase: int) -> TestCase:
        for case in self.load_test_cases(question_id):
            if case.testcase == testcase:
                return case
        raise QuestionNotFound(f"Question {question_id} has no test case {testcase}")

    def save_test_case(self, question_id: int, case: TestCase, testcase: Optional[int] = None) -> int:
        raw_question = self._raw_question(question_id)
        tests = raw_question.setdefault("tests", [])
        if testcase is None:
            testcase = max((int(entry["testcase"]) for entry in tests), default=0) + 1
            tests.append(_test_to_raw(case, testcase))
        else:
            for position, entry in enumerate(tests):
                if int(entry["testcase"]) == testcase:
                    tests[position] = _test_to_raw(case, testcase)
                    break
            else:
                raise QuestionNotFound(f"Question {question_id} has no test case {testcase}")
        self._write()
        logger.info("Saved test case %s of question %s", testcase, question_id)
        return testcase

    def _raw_question(self, question_id: int) -> Dict[str, Any]:
        try:
            return self._raw_questions[question_id]
        except KeyError as exc:
            raise QuestionNotFound(f"Question {question_id} does not exist") from exc

    def _write(self) -> None:
        if self._path is None:
            return
        try:
            self._path.write_text(
                yaml.safe_dump(self._raw, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
        except OSError as exc:
            raise StoreUnavailable(f"Cannot write question bank {self._path}: {exc}") from exc

    def _index(self) -> None:
        for raw_context in self._raw.get("contexts", []) or []:
            context = Context(
                id=int(raw_context["id"]),
                name=str(raw_context["name"]),
                path=str(raw_context.get("path", f"/{raw_context['id']}")),
            )
            if context.id in self._contexts:
                raise BankValidationError(f"Duplicate context id {context.id}")
            self._contexts[context.id] = context
            for raw_category in raw_context.get("categories", []) or []:
                category = Category(
                    id=int(raw_category["id"]),
                    context_id=context.id,
                    name=str(raw_category["name"]),
                    path=str(raw_category.get("path", raw_category["name"])),
                )
                if category.id in self._categories:
                    raise BankValidationError(f"Duplicate category id {category.id}")
                self._categories[category.id] = category
                for raw_question in raw_category.get("questions", []) or []:
                    question = _parse_question(raw_question, category.id)
                    if question.id in self._questions:
                        raise BankValidationError(f"Duplicate question id {question.id}")
                    self._questions[question.id] = question
                    self._raw_questions[question.id] = raw_question
        logger.debug(
            "Indexed %d contexts, %d categories, %d questions",
            len(self._contexts),
            len(self._categories),
            len(self._questions),
        )


def _parse_question(raw: Mapping[str, Any], category_id: int) -> Question:
    seeds = tuple(dict.fromkeys(int(seed) for seed in raw.get("deployedseeds", []) or []))
    version = raw.get("stackversion")
    variables = tuple((str(name), str(text)) for name, text in (raw.get("variables") or {}).items())
    inputs = {
        str(name): _parse_input(str(name), value) for name, value in (raw.get("inputs") or {}).items()
    }
    prts = {str(name): _parse_prt(str(name), value) for name, value in (raw.get("prts") or {}).items()}
    seed = raw.get("seed")
    return Question(
        id=int(raw["id"]),
        name=str(raw["name"]),
        category=category_id,
        qtype=str(raw.get("qtype", "stack")),
        seed=int(seed) if seed is not None else None,
        deployedseeds=seeds,
        stackversion=str(version) if version is not None else None,
        generalfeedback=str(raw.get("generalfeedback", "") or ""),
        questiontext=str(raw.get("questiontext", "") or ""),
        questionnote=str(raw.get("questionnote", "") or ""),
        variables=variables,
        inputs=inputs,
        prts=prts,
        defaultmark=float(raw.get("defaultmark", 1.0)),
        penalty=float(raw.get("penalty", 0.1)),
    )


def _parse_input(name: str, raw: Any) -> InputDefinition:
    if isinstance(raw, Mapping):
        return InputDefinition(
            name=name,
            teacher_answer=str(raw.get("tans", "") or ""),
            input_type=str(raw.get("type", "algebraic")),
        )
    return InputDefinition(name=name, teacher_answer="" if raw is None else str(raw))


def _parse_prt(name: str, raw: Mapping[str, Any]) -> PrtDefinition:
    nodes = tuple(_parse_node(entry) for entry in raw.get("nodes", []))
    inputs = tuple(str(item) for item in raw.get("inputs", []) or [])
    return PrtDefinition(name=name, nodes=nodes, inputs=inputs, feedback=str(raw.get("feedback", "") or ""))


def _parse_node(raw: Mapping[str, Any]) -> PrtNode:
    options = raw.get("options")
    return PrtNode(
        sans=str(raw["sans"]),
        tans=str(raw["tans"]),
        test=str(raw.get("test", "AlgEquiv")),
        options=float(options) if options is not None else None,
        true_branch=_parse_branch(raw.get("true_branch")),
        false_branch=_parse_branch(raw.get("false_branch")),
    )


def _parse_branch(raw: Optional[Mapping[str, Any]]) -> PrtBranch:
    if not raw:
        return PrtBranch()
    score = raw.get("score")
    penalty = raw.get("penalty")
    next_node = raw.get("next")
    return PrtBranch(
        score=float(score) if score is not None else None,
        penalty=float(penalty) if penalty is not None else None,
        note=str(raw.get("note", "") or ""),
        mode=str(raw.get("mode", "=")),
        next_node=int(next_node) if next_node is not None and int(next_node) > 0 else None,
    )


def _parse_test(raw: Mapping[str, Any]) -> TestCase:
    inputs = {
        str(name): "" if value is None else str(value)
        for name, value in (raw.get("inputs") or {}).items()
    }
    expected = {}
    for prtname, value in (raw.get("expected") or {}).items():
        score = value.get("score")
        penalty = value.get("penalty")
        expected[str(prtname)] = ExpectedResult(
            score=float(score) if score is not None else None,
            penalty=float(penalty) if penalty is not None else None,
            answernote=str(value.get("answernote", "")),
        )
    return TestCase(inputs=inputs, expected=expected, testcase=int(raw["testcase"]))


def _test_to_raw(case: TestCase, testcase: int) -> Dict[str, Any]:
    return {
        "testcase": testcase,
        "inputs": dict(case.inputs),
        "expected": {
            prtname: {
                "score": result.score,
                "penalty": result.penalty,
                "answernote": result.answernote,
            }
            for prtname, result in case.expected.items()
        },
    }

