"""Evaluation engine abstractions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional

from qbulktest.core import PrtState, Question


ADAPTIVE = "adaptive"


@dataclass(frozen=True)
class DisplayOptions:
    """How a question variant is rendered."""

    readonly: bool = True
    flags_hidden: bool = True
    suppress_runtests_link: bool = True


@dataclass
class QuestionUsage:
    """Isolated sandbox holding one instantiated variant.

    ``runtime_errors`` is keyed by error text so repeated errors collapse.
    """

    question: Question
    seed: int
    behaviour: str = ADAPTIVE
    variables: Dict[str, Any] = field(default_factory=dict)
    runtime_errors: Dict[str, str] = field(default_factory=dict)

    def add_runtime_error(self, key: str, detail: Optional[str] = None) -> None:
        self.runtime_errors.setdefault(key, detail or key)

    @property
    def has_errors(self) -> bool:
        return bool(self.runtime_errors)


class EvaluationEngine:
    """Base interface for evaluation engines."""

    name: str = ""

    def validate_version(self, question: Question) -> str:
        """Return an empty string when ``question`` is usable, else the reason."""

        return ""

    def instantiate(
        self,
        question: Question,
        seed: Optional[int] = None,
        *,
        behaviour: str = ADAPTIVE,
    ) -> QuestionUsage:
        raise NotImplementedError

    def render(self, usage: QuestionUsage, options: DisplayOptions) -> str:
        raise NotImplementedError

    def general_feedback(self, usage: QuestionUsage) -> str:
        raise NotImplementedError

    def question_summary(self, usage: QuestionUsage) -> str:
        raise NotImplementedError

    def evaluate_prts(self, usage: QuestionUsage, inputs: Mapping[str, str]) -> Dict[str, PrtState]:
        raise NotImplementedError

    def question_variables(self, usage: QuestionUsage) -> Dict[str, str]:
        return {key: str(value) for key, value in usage.variables.items()}


class EngineManager:
    """Registry for evaluation engines keyed by name."""

    def __init__(self) -> None:
        self._engines: Dict[str, EvaluationEngine] = {}

    def register(self, engine: EvaluationEngine) -> None:
        if not engine.name:
            raise ValueError("Engines must define a non-empty name")
        if engine.name in self._engines:
            raise ValueError(f"Engine '{engine.name}' already registered")
        self._engines[engine.name] = engine

    def get_engine(self, name: str) -> EvaluationEngine:
        try:
            return self._engines[name]
        except KeyError as exc:
            known = ", ".join(sorted(self._engines)) or "none"
            raise KeyError(f"No engine registered as {name!r} (known: {known})") from exc

    def __contains__(self, name: str) -> bool:
        return name in self._engines

    def engines(self) -> Iterable[EvaluationEngine]:
        return tuple(self._engines.values())


engine_manager = EngineManager()
