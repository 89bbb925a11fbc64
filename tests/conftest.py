import shutil
from pathlib import Path

import pytest

from qbulktest import bootstrap
from qbulktest.store import YamlQuestionBank, load_bank

EXAMPLE_BANK = Path(__file__).resolve().parents[1] / "examples" / "algebra_bank.yaml"


@pytest.fixture(scope="session", autouse=True)
def setup_qbulktest_registry() -> None:
    """Bootstrap the built-in engine once for the entire test session."""

    bootstrap()


@pytest.fixture
def bank_path(tmp_path) -> Path:
    """A writable copy of the example bank."""

    target = tmp_path / "bank.yaml"
    shutil.copyfile(EXAMPLE_BANK, target)
    return target


@pytest.fixture
def bank(bank_path) -> YamlQuestionBank:
    return load_bank(bank_path)
