"""Small helpers shared by the CLI, config and engine resolution."""
from __future__ import annotations

import importlib
from typing import Any, Tuple


def import_string(path: str) -> Any:
    """Resolve ``package.module:attr`` (or ``package.module.attr``) to the object."""

    if not path:
        raise ValueError("Empty import path provided")
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid import path '{path}'")
    module = importlib.import_module(module_name)
    if not hasattr(module, attr):
        raise AttributeError(f"Module '{module_name}' has no attribute '{attr}'")
    return getattr(module, attr)


def split_assignment(item: str) -> Tuple[str, str]:
    """Split ``name=value`` into its parts; the value may contain ``=``."""

    key, sep, value = item.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Expected NAME=VALUE, got '{item}'")
    return key, value.strip()
