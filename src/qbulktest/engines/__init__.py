"""Evaluation engine exports."""
from .base import ADAPTIVE, DisplayOptions, EngineManager, EvaluationEngine, QuestionUsage, engine_manager
from .builtin import BuiltinEngine, register_builtin_engine

__all__ = [
    "ADAPTIVE",
    "BuiltinEngine",
    "DisplayOptions",
    "EngineManager",
    "EvaluationEngine",
    "QuestionUsage",
    "engine_manager",
    "register_builtin_engines",
    "resolve_engine",
]


def register_builtin_engines() -> None:
    register_builtin_engine()


def resolve_engine(name: str) -> EvaluationEngine:
    """Return a registered engine, or instantiate one from a dotted path."""

    if name in engine_manager:
        return engine_manager.get_engine(name)
    if ":" in name or "." in name:
        from qbulktest.utils import import_string

        target = import_string(name)
        engine = target() if isinstance(target, type) else target
        if not isinstance(engine, EvaluationEngine):
            raise TypeError(f"'{name}' does not provide an EvaluationEngine")
        return engine
    return engine_manager.get_engine(name)
