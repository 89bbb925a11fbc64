"""Core dataclasses shared across qbulktest subsystems."""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from qbulktest.errors import TestCaseFormError


STACK_QTYPE = "stack"
NULL_NOTE = "NULL"
DEFAULT_SEED = 0


@dataclass(frozen=True)
class Tolerance:
    """Tolerance used when comparing expected and actual PRT outcomes."""

    absolute: float = 1e-6


@dataclass(frozen=True)
class Context:
    """A container of question categories (course, module, system)."""

    id: int
    name: str
    path: str = ""


@dataclass(frozen=True)
class Category:
    """A question category inside a context."""

    id: int
    context_id: int
    name: str
    path: str = ""


@dataclass(frozen=True)
class InputDefinition:
    """A named student input of a question."""

    name: str
    teacher_answer: str = ""
    input_type: str = "algebraic"


@dataclass(frozen=True)
class PrtBranch:
    """Outcome applied when a PRT node evaluates true or false."""

    score: Optional[float] = None
    penalty: Optional[float] = None
    note: str = ""
    mode: str = "="
    next_node: Optional[int] = None


@dataclass(frozen=True)
class PrtNode:
    """A single answer test inside a potential response tree."""

    sans: str
    tans: str
    test: str = "AlgEquiv"
    options: Optional[float] = None
    true_branch: PrtBranch = field(default_factory=PrtBranch)
    false_branch: PrtBranch = field(default_factory=PrtBranch)


@dataclass(frozen=True)
class PrtDefinition:
    """A named potential response tree; nodes are numbered from 1."""

    name: str
    nodes: Tuple[PrtNode, ...] = tuple()
    inputs: Tuple[str, ...] = tuple()
    feedback: str = ""


@dataclass(frozen=True)
class Question:
    """Immutable view of a question definition as seen by the runner."""

    id: int
    name: str
    category: int
    qtype: str = STACK_QTYPE
    seed: Optional[int] = None
    deployedseeds: Tuple[int, ...] = tuple()
    stackversion: Optional[str] = None
    generalfeedback: str = ""
    questiontext: str = ""
    questionnote: str = ""
    variables: Tuple[Tuple[str, str], ...] = tuple()
    inputs: Mapping[str, InputDefinition] = field(default_factory=dict)
    prts: Mapping[str, PrtDefinition] = field(default_factory=dict)
    defaultmark: float = 1.0
    penalty: float = 0.1

    def __post_init__(self) -> None:
        # read-only views; seed-override copies share them
        for name in ("inputs", "prts"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    @property
    def is_stack(self) -> bool:
        return self.qtype == STACK_QTYPE

    def variant_seeds(self) -> Tuple[Optional[int], ...]:
        """Seeds the bulk tester runs: every deployed seed, or the implicit one."""

        if self.deployedseeds:
            return tuple(self.deployedseeds)
        return (None,)


def with_seed_override(question: Question, seed: int) -> Question:
    """Return a copy of ``question`` pinned to ``seed``.

    The copy bypasses the question's own seed derivation, which lets a caller
    reproduce one specific deployed variant exactly.
    """

    return dataclasses.replace(question, seed=int(seed))


@dataclass(frozen=True)
class ExpectedResult:
    """Expected outcome of one PRT for a test case.

    ``score=None`` with the ``NULL`` note means the PRT must not fire.
    """

    score: Optional[float]
    penalty: Optional[float]
    answernote: str

    @classmethod
    def null(cls) -> "ExpectedResult":
        return cls(score=None, penalty=None, answernote=NULL_NOTE)

    @property
    def is_null(self) -> bool:
        return self.score is None


@dataclass(frozen=True)
class PrtState:
    """Actual outcome of evaluating one PRT."""

    score: Optional[float]
    penalty: Optional[float]
    answernotes: Tuple[str, ...] = tuple()
    errors: Tuple[str, ...] = tuple()

    @property
    def answernote(self) -> str:
        if not self.answernotes:
            return NULL_NOTE
        return self.answernotes[-1]

    @classmethod
    def not_evaluated(cls) -> "PrtState":
        return cls(score=None, penalty=None, answernotes=(NULL_NOTE,))


@dataclass
class TestCase:
    """A stored question test: input values and expected PRT outcomes."""

    __test__ = False

    inputs: Mapping[str, str]
    expected: Mapping[str, ExpectedResult]
    testcase: Optional[int] = None

    def identifier(self) -> str:
        if self.testcase is None:
            return "new"
        return f"test{self.testcase}"

    @classmethod
    def from_form(
        cls,
        question: Question,
        data: Mapping[str, Any],
        testcase: Optional[int] = None,
    ) -> "TestCase":
        """Build a test case from flattened editor data.

        Every input of ``question`` maps to a field of the same name; every PRT
        maps to ``<prt>score``, ``<prt>penalty`` and ``<prt>answernote``.
        """

        inputs = {name: str(data.get(name, "") or "") for name in question.inputs}
        expected = {}
        for prtname in question.prts:
            note = str(data.get(f"{prtname}answernote", "") or "").strip()
            if not note:
                raise TestCaseFormError(f"Missing answer note for PRT '{prtname}'")
            score = _parse_optional_float(data.get(f"{prtname}score"), f"{prtname}score")
            penalty = _parse_optional_float(data.get(f"{prtname}penalty"), f"{prtname}penalty")
            if score is not None and not 0.0 <= score <= 1.0:
                raise TestCaseFormError(f"Score for PRT '{prtname}' must be between 0 and 1")
            expected[prtname] = ExpectedResult(score=score, penalty=penalty, answernote=note)
        return cls(inputs=inputs, expected=expected, testcase=testcase)

    def to_form(self) -> dict:
        data: dict = dict(self.inputs)
        for prtname, result in self.expected.items():
            data[f"{prtname}score"] = "" if result.score is None else result.score
            data[f"{prtname}penalty"] = "" if result.penalty is None else result.penalty
            data[f"{prtname}answernote"] = result.answernote
        return data


def _parse_optional_float(raw: Any, field_name: str) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        raw = text
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise TestCaseFormError(f"Field '{field_name}' must be a number, got {raw!r}") from exc
