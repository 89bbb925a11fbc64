"""A small, sandboxed expression language used by the built-in engine.

Expressions use a Maxima-like surface: ``^`` is power, lists are 1-indexed and
``rand(n)`` draws from the variant's seeded generator. Only arithmetic,
comparisons, list literals and a whitelist of functions are accepted.
"""
from __future__ import annotations

import ast
import math
import operator
import re
from typing import Any, Callable, Dict, Mapping, Optional, Set

import numpy as np


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated."""


_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
    ast.Mod: operator.mod,
    ast.FloorDiv: operator.floordiv,
}

# Bounds on integer powers and sequence repetition; larger results stall the batch.
MAX_INT_BITS = 10_000
MAX_SEQUENCE_LENGTH = 100_000

_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_CONSTANTS: Dict[str, Any] = {
    "pi": math.pi,
    "e": math.e,
    "true": True,
    "false": False,
}

_MATH_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "exp": math.exp,
    "log": math.log,
    "abs": abs,
    "floor": math.floor,
    "ceiling": math.ceil,
    "round": round,
    "min": min,
    "max": max,
    "length": len,
    "float": float,
}

_CARET = re.compile(r"\^")


def _prepare(text: str) -> str:
    return _CARET.sub("**", text.strip())


def parse(text: str) -> ast.Expression:
    source = _prepare(text)
    if not source:
        raise ExpressionError("Empty expression")
    try:
        return ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"Syntax error in expression '{text}'") from exc


def names_in(text: str) -> Set[str]:
    """Return the variable names referenced by ``text`` (function names excluded)."""

    tree = parse(text)
    called = {
        node.func.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
    }
    return {
        node.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Name) and node.id not in called and node.id not in _CONSTANTS
    }


class Evaluator:
    """Evaluates expressions against a variable scope and a seeded generator."""

    def __init__(self, variables: Optional[Mapping[str, Any]] = None, rng: Optional[np.random.Generator] = None) -> None:
        self._variables: Dict[str, Any] = dict(variables or {})
        self._rng = rng if rng is not None else np.random.default_rng(0)

    @property
    def variables(self) -> Dict[str, Any]:
        return dict(self._variables)

    def assign(self, name: str, text: str) -> Any:
        value = self.evaluate(text)
        self._variables[name] = value
        return value

    def evaluate(self, text: str) -> Any:
        tree = parse(text)
        try:
            return self._eval(tree.body)
        except ExpressionError:
            raise
        except ZeroDivisionError as exc:
            raise ExpressionError(f"Division by zero in '{text}'") from exc
        except (ArithmeticError, TypeError, ValueError, IndexError) as exc:
            raise ExpressionError(f"Cannot evaluate '{text}': {exc}") from exc

    def _eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, (int, float, str)) and not isinstance(node.value, bool):
                return node.value
            raise ExpressionError(f"Unsupported literal {node.value!r}")
        if isinstance(node, ast.Name):
            if node.id in self._variables:
                return self._variables[node.id]
            if node.id in _CONSTANTS:
                return _CONSTANTS[node.id]
            raise ExpressionError(f"Unknown variable '{node.id}'")
        if isinstance(node, ast.BinOp):
            op = _BIN_OPS.get(type(node.op))
            if op is None:
                raise ExpressionError(f"Unsupported operator {type(node.op).__name__}")
            left = self._eval(node.left)
            right = self._eval(node.right)
            _check_size(node.op, left, right)
            return _normalize(op(left, right))
        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand)
            if isinstance(node.op, ast.USub):
                return -operand
            if isinstance(node.op, ast.UAdd):
                return +operand
            if isinstance(node.op, ast.Not):
                return not operand
            raise ExpressionError(f"Unsupported unary operator {type(node.op).__name__}")
        if isinstance(node, ast.BoolOp):
            values = [self._eval(value) for value in node.values]
            if isinstance(node.op, ast.And):
                return all(values)
            return any(values)
        if isinstance(node, ast.Compare):
            left = self._eval(node.left)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = _COMPARE_OPS.get(type(op_node))
                if op is None:
                    raise ExpressionError(f"Unsupported comparison {type(op_node).__name__}")
                right = self._eval(comparator)
                if not op(left, right):
                    return False
                left = right
            return True
        if isinstance(node, (ast.List, ast.Tuple)):
            return [self._eval(item) for item in node.elts]
        if isinstance(node, ast.Subscript):
            container = self._eval(node.value)
            index = self._eval(node.slice)
            if not isinstance(container, list) or not isinstance(index, int):
                raise ExpressionError("Only integer indexing of lists is supported")
            if index < 1 or index > len(container):
                raise ExpressionError(f"List index {index} out of range 1..{len(container)}")
            return container[index - 1]
        if isinstance(node, ast.Call):
            return self._call(node)
        raise ExpressionError(f"Unsupported syntax {type(node).__name__}")

    def _call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name) or node.keywords:
            raise ExpressionError("Only plain function calls are supported")
        name = node.func.id
        args = [self._eval(arg) for arg in node.args]
        if name == "rand":
            return self._rand(*args)
        if name == "rand_with_step":
            return self._rand_with_step(*args)
        func = _MATH_FUNCTIONS.get(name)
        if func is None:
            raise ExpressionError(f"Unknown function '{name}'")
        return _normalize(func(*args))

    def _rand(self, limit: Any) -> Any:
        if isinstance(limit, list):
            if not limit:
                raise ExpressionError("rand() of an empty list")
            return limit[int(self._rng.integers(0, len(limit)))]
        if isinstance(limit, int):
            if limit <= 0:
                raise ExpressionError("rand(n) needs a positive integer")
            return int(self._rng.integers(0, limit))
        if isinstance(limit, float):
            return float(self._rng.uniform(0.0, limit))
        raise ExpressionError(f"rand() cannot draw from {limit!r}")

    def _rand_with_step(self, low: Any, high: Any, step: Any) -> Any:
        if step == 0:
            raise ExpressionError("rand_with_step needs a non-zero step")
        count = int(math.floor((high - low) / step)) + 1
        if count <= 0:
            raise ExpressionError("rand_with_step range is empty")
        return _normalize(low + step * int(self._rng.integers(0, count)))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_size(op: ast.operator, left: Any, right: Any) -> None:
    if isinstance(op, ast.Pow) and _is_int(left) and _is_int(right):
        if right > 0 and abs(left) > 1 and left.bit_length() * right > MAX_INT_BITS:
            raise ExpressionError(f"Integer power exceeds {MAX_INT_BITS} bits")
    if isinstance(op, ast.Mult):
        for sequence, count in ((left, right), (right, left)):
            if isinstance(sequence, (str, list)) and _is_int(count):
                if len(sequence) * count > MAX_SEQUENCE_LENGTH:
                    raise ExpressionError(f"Repeated sequence exceeds {MAX_SEQUENCE_LENGTH} items")


def _normalize(value: Any) -> Any:
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return float(value)
    return value


def format_value(value: Any) -> str:
    """Render a value the way castext displays it."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.12g}"
    if isinstance(value, list):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    return str(value)
