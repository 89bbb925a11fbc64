"""Run settings combining CLI options, a YAML config file and the environment."""
from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError
from .reporting.sections import DEFAULT_INDEX_URL, DEFAULT_PREVIEW_URL

ENV_PREFIX = "QBULKTEST_"

_ENV_KEYS = {
    "bank": "BANK",
    "engine": "ENGINE",
    "time_limit": "TIME_LIMIT",
    "variant_time_limit": "VARIANT_TIME",
    "base_url": "BASE_URL",
    "index_url": "INDEX_URL",
}


@dataclass
class Settings:
    bank: Optional[str] = None
    engine: str = "builtin"
    time_limit: Optional[float] = None
    variant_time_limit: int = 60
    base_url: str = DEFAULT_PREVIEW_URL
    index_url: str = DEFAULT_INDEX_URL
    tolerance: float = 1e-6


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Resolve settings: explicit overrides > config file > environment > defaults."""

    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for key, suffix in _ENV_KEYS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw not in (None, ""):
            values[key] = raw
    values.update(_load_yaml(config_path))
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value
    return _build(values)


def _load_yaml(path: Optional[str]) -> Mapping[str, Any]:
    if not path:
        return {}
    config_path = pathlib.Path(path).expanduser()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError("Config file must contain a mapping at the top level")
    known = {item.name for item in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(map(str, unknown))}")
    if data.get("bank") and not pathlib.Path(str(data["bank"])).is_absolute():
        data = dict(data)
        data["bank"] = str((config_path.parent / str(data["bank"])).resolve())
    return data


def _build(values: Mapping[str, Any]) -> Settings:
    settings = Settings()
    try:
        if values.get("bank") is not None:
            settings.bank = str(values["bank"])
        if values.get("engine") is not None:
            settings.engine = str(values["engine"])
        if values.get("time_limit") is not None:
            settings.time_limit = float(values["time_limit"])
        if values.get("variant_time_limit") is not None:
            settings.variant_time_limit = int(values["variant_time_limit"])
        if values.get("base_url") is not None:
            settings.base_url = str(values["base_url"])
        if values.get("index_url") is not None:
            settings.index_url = str(values["index_url"])
        if values.get("tolerance") is not None:
            settings.tolerance = float(values["tolerance"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid setting value: {exc}") from exc
    if settings.variant_time_limit <= 0:
        raise ConfigError("variant_time_limit must be positive")
    if settings.time_limit is not None and settings.time_limit <= 0:
        raise ConfigError("time_limit must be positive")
    return settings
