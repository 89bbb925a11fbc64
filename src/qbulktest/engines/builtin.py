"""Built-in evaluation engine used for development, CI and stand-alone banks.

Question variables are evaluated in order with a generator seeded by the
variant seed, castext ``{@expr@}`` blocks are substituted with their values,
and response trees walk their nodes from node 1 following the true/false
branches. Variable instantiation and castext results are cached per
(question, seed) in bounded LRU caches, so re-instantiating a variant is
cheap and reproducible.
"""
from __future__ import annotations

import html
import logging
import math
import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Mapping, Optional, Set, Tuple

import numpy as np

from qbulktest.core.models import DEFAULT_SEED, PrtDefinition, PrtNode, PrtState, Question

from .base import ADAPTIVE, DisplayOptions, EvaluationEngine, QuestionUsage, engine_manager
from .expressions import Evaluator, ExpressionError, format_value, names_in

logger = logging.getLogger(__name__)

MINIMUM_STACK_VERSION = "2017072900"
DEFAULT_CACHE_SIZE = 256

_CASTEXT_BLOCK = re.compile(r"\{[@#](.+?)[@#]\}", re.DOTALL)
_INPUT_TAG = re.compile(r"\[\[input:(\w+)\]\]")
_HIDDEN_TAG = re.compile(r"\[\[(?:validation|feedback):\w+\]\]")


@dataclass(frozen=True)
class _CachedVariant:
    variables: Mapping[str, Any]
    errors: Tuple[str, ...]


@dataclass(frozen=True)
class _CachedText:
    text: str
    errors: Tuple[str, ...]


class _LruCache:
    """Mapping that keeps at most ``maxsize`` entries, evicting the least recently used."""

    def __init__(self, maxsize: int) -> None:
        if maxsize < 1:
            raise ValueError("cache size must be at least 1")
        self.maxsize = maxsize
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> Any:
        value = self._entries.get(key)
        if value is not None:
            self._entries.move_to_end(key)
        return value

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class BuiltinEngine(EvaluationEngine):
    """Reference engine evaluating the bank's declarative question format.

    The engine lives for the whole process, so its per-variant caches are
    bounded by ``cache_size`` entries each.
    """

    name = "builtin"

    def __init__(
        self,
        *,
        minimum_version: str = MINIMUM_STACK_VERSION,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self.minimum_version = minimum_version
        self._variants = _LruCache(cache_size)
        self._texts = _LruCache(cache_size)

    def cache_sizes(self) -> Tuple[int, int]:
        """Number of cached (variants, castext results)."""

        return len(self._variants), len(self._texts)

    def clear_cache(self) -> None:
        self._variants.clear()
        self._texts.clear()

    def validate_version(self, question: Question) -> str:
        version = (question.stackversion or "").strip()
        if not version:
            return "Question has no STACK version. Re-save it to upgrade."
        if not version.isdigit():
            return f"Unrecognised STACK version '{version}'."
        if int(version) < int(self.minimum_version):
            return (
                f"Question was last saved with STACK version {version}, "
                f"older than {self.minimum_version}. Re-save it to upgrade."
            )
        return ""

    def instantiate(
        self,
        question: Question,
        seed: Optional[int] = None,
        *,
        behaviour: str = ADAPTIVE,
    ) -> QuestionUsage:
        effective = _effective_seed(question, seed)
        cached = self._variant(question, effective)
        usage = QuestionUsage(
            question=question,
            seed=effective,
            behaviour=behaviour,
            variables=dict(cached.variables),
        )
        for key in cached.errors:
            usage.add_runtime_error(key)
        return usage

    def render(self, usage: QuestionUsage, options: DisplayOptions) -> str:
        body = self._castext(usage, usage.question.questiontext)
        readonly = ' readonly="readonly"' if options.readonly else ""
        body = _INPUT_TAG.sub(
            lambda match: f'<input type="text" name="{match.group(1)}"{readonly} />', body
        )
        if options.flags_hidden:
            body = _HIDDEN_TAG.sub("", body)
        parts = [f'<div class="que stack" data-seed="{usage.seed}">', f'<div class="qtext">{body}</div>']
        if not options.suppress_runtests_link:
            parts.append(
                f'<div class="questiontestslink">questiontestrun?questionid={usage.question.id}</div>'
            )
        parts.append("</div>")
        return "".join(parts)

    def general_feedback(self, usage: QuestionUsage) -> str:
        return self._castext(usage, usage.question.generalfeedback)

    def question_summary(self, usage: QuestionUsage) -> str:
        return self._castext(usage, usage.question.questionnote)

    def question_variables(self, usage: QuestionUsage) -> Dict[str, str]:
        return {key: format_value(value) for key, value in usage.variables.items()}

    def evaluate_prts(self, usage: QuestionUsage, inputs: Mapping[str, str]) -> Dict[str, PrtState]:
        question = usage.question
        evaluator = Evaluator(usage.variables, rng=np.random.default_rng(usage.seed))
        raw: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        for name in question.inputs:
            text = str(inputs.get(name, "") or "").strip()
            if not text:
                continue
            raw[name] = text
            if question.inputs[name].input_type == "string":
                values[name] = text
                continue
            try:
                values[name] = evaluator.evaluate(text)
            except ExpressionError as exc:
                logger.debug("Input %s=%r of question %s is invalid: %s", name, text, question.id, exc)
        states: Dict[str, PrtState] = {}
        scope = dict(usage.variables)
        scope.update(values)
        for prtname, prt in question.prts.items():
            required = prt.inputs or tuple(sorted(self._prt_inputs(question, prt)))
            if any(name not in values for name in required):
                states[prtname] = PrtState.not_evaluated()
                continue
            states[prtname] = self._evaluate_prt(usage, prt, scope, raw)
        return states

    def _variant(self, question: Question, seed: int) -> _CachedVariant:
        key = (question.id, seed, question.variables)
        cached = self._variants.get(key)
        if cached is not None:
            return cached
        evaluator = Evaluator(rng=np.random.default_rng(seed))
        errors: list[str] = []
        for name, text in question.variables:
            try:
                evaluator.assign(name, text)
            except ExpressionError as exc:
                errors.append(f"Question variable {name}: {exc}")
                break
        cached = _CachedVariant(variables=evaluator.variables, errors=tuple(errors))
        self._variants.put(key, cached)
        return cached

    def _castext(self, usage: QuestionUsage, text: str) -> str:
        if not text:
            return ""
        key = (usage.question.id, usage.seed, usage.question.variables, text)
        cached = self._texts.get(key)
        if cached is None:
            cached = self._expand_castext(usage, text)
            self._texts.put(key, cached)
        for error in cached.errors:
            usage.add_runtime_error(error)
        return cached.text

    def _expand_castext(self, usage: QuestionUsage, text: str) -> _CachedText:
        evaluator = Evaluator(usage.variables, rng=np.random.default_rng(usage.seed))
        errors: list[str] = []

        def substitute(match: "re.Match[str]") -> str:
            try:
                return html.escape(format_value(evaluator.evaluate(match.group(1))))
            except ExpressionError as exc:
                errors.append(f"CASText: {exc}")
                return ""

        return _CachedText(text=_CASTEXT_BLOCK.sub(substitute, text), errors=tuple(errors))

    def _prt_inputs(self, question: Question, prt: PrtDefinition) -> Set[str]:
        referenced: Set[str] = set()
        for node in prt.nodes:
            for expression in (node.sans, node.tans):
                try:
                    referenced |= names_in(expression)
                except ExpressionError:
                    continue
        return {name for name in referenced if name in question.inputs}

    def _evaluate_prt(
        self,
        usage: QuestionUsage,
        prt: PrtDefinition,
        scope: Mapping[str, Any],
        raw: Mapping[str, str],
    ) -> PrtState:
        evaluator = Evaluator(scope, rng=np.random.default_rng(usage.seed))
        score = 0.0
        penalty: Optional[float] = None
        notes: list[str] = []
        errors: list[str] = []
        visited: Set[int] = set()
        index: Optional[int] = 1 if prt.nodes else None
        while index is not None:
            if index in visited or not 1 <= index <= len(prt.nodes):
                key = f"PRT {prt.name}: invalid next node {index}"
                usage.add_runtime_error(key)
                errors.append(key)
                break
            visited.add(index)
            node = prt.nodes[index - 1]
            try:
                outcome = _answer_test(node, evaluator, raw)
            except ExpressionError as exc:
                key = f"PRT {prt.name} node {index}: {exc}"
                usage.add_runtime_error(key)
                errors.append(key)
                notes.append(f"{prt.name}-{index}-E")
                break
            branch = node.true_branch if outcome else node.false_branch
            notes.append(branch.note or f"{prt.name}-{index}-{'T' if outcome else 'F'}")
            if branch.score is not None:
                if branch.mode == "+":
                    score += branch.score
                elif branch.mode == "-":
                    score -= branch.score
                else:
                    score = branch.score
            if branch.penalty is not None:
                penalty = branch.penalty
            index = branch.next_node
        score = min(max(score, 0.0), 1.0)
        if penalty is None:
            penalty = 0.0 if score >= 1.0 else usage.question.penalty
        return PrtState(score=score, penalty=penalty, answernotes=tuple(notes), errors=tuple(errors))


def _effective_seed(question: Question, seed: Optional[int]) -> int:
    if seed is not None:
        return int(seed)
    if question.seed is not None:
        return int(question.seed)
    return DEFAULT_SEED


def _answer_test(node: PrtNode, evaluator: Evaluator, raw: Mapping[str, str]) -> bool:
    test = node.test
    if test == "String":
        return _string_value(node.sans, evaluator, raw) == _string_value(node.tans, evaluator, raw)
    sans = evaluator.evaluate(node.sans)
    tans = evaluator.evaluate(node.tans)
    if test == "AlgEquiv":
        return _equivalent(sans, tans)
    if test in {"NumAbsolute", "NumRelative"}:
        tolerance = node.options if node.options is not None else 0.05
        if not _is_number(sans) or not _is_number(tans):
            raise ExpressionError(f"{test} needs numbers, got {format_value(sans)} and {format_value(tans)}")
        if test == "NumRelative":
            tolerance = tolerance * abs(tans)
        return abs(sans - tans) <= tolerance
    if test in {"GT", "GTE"}:
        if not _is_number(sans) or not _is_number(tans):
            raise ExpressionError(f"{test} needs numbers, got {format_value(sans)} and {format_value(tans)}")
        return sans > tans if test == "GT" else sans >= tans
    raise ExpressionError(f"Unknown answer test '{test}'")


def _string_value(expression: str, evaluator: Evaluator, raw: Mapping[str, str]) -> str:
    text = expression.strip()
    if text in raw:
        return raw[text]
    return format_value(evaluator.evaluate(text))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equivalent(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        if math.isnan(left) or math.isnan(right):
            return False
        return bool(np.isclose(left, right, rtol=1e-9, atol=1e-12))
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(_equivalent(a, b) for a, b in zip(left, right))
    return left == right


def register_builtin_engine() -> None:
    if BuiltinEngine.name not in engine_manager:
        engine_manager.register(BuiltinEngine())
