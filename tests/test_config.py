import textwrap

import pytest

from qbulktest.config import Settings, load_settings
from qbulktest.errors import ConfigError


def test_defaults() -> None:
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.engine == "builtin"
    assert settings.time_limit is None


def test_precedence_cli_over_file_over_environment(tmp_path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(
        textwrap.dedent(
            """
            bank: banks/main.yaml
            variant_time_limit: 30
            """
        ),
        encoding="utf-8",
    )
    environ = {
        "QBULKTEST_BANK": "/env/bank.yaml",
        "QBULKTEST_VARIANT_TIME": "90",
        "QBULKTEST_TIME_LIMIT": "600",
        "QBULKTEST_ENGINE": "",
    }
    settings = load_settings(str(config), {"time_limit": 120, "engine": None}, environ=environ)
    assert settings.bank == str((tmp_path / "banks" / "main.yaml").resolve())
    assert settings.variant_time_limit == 30
    assert settings.time_limit == 120.0
    assert settings.engine == "builtin"

    from_env = load_settings(environ=environ)
    assert from_env.bank == "/env/bank.yaml"
    assert from_env.variant_time_limit == 90


@pytest.mark.parametrize(
    "text, message",
    [
        ("colour: red\n", "Unknown config keys: colour"),
        ("- just\n- a list\n", "mapping at the top level"),
        ("variant_time_limit: soon\n", "Invalid setting value"),
        ("variant_time_limit: 0\n", "must be positive"),
        ("time_limit: [\n", "not valid YAML"),
    ],
)
def test_invalid_config_files(tmp_path, text, message) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match=message):
        load_settings(str(config), environ={})


def test_missing_config_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="Cannot read config file"):
        load_settings(str(tmp_path / "nope.yaml"), environ={})


def test_bad_environment_value() -> None:
    with pytest.raises(ConfigError):
        load_settings(environ={"QBULKTEST_TIME_LIMIT": "-5"})
