import pytest

from qbulktest.core import (
    ExpectedResult,
    PrtDefinition,
    PrtState,
    Question,
    TestCase,
    with_seed_override,
)
from qbulktest.core.models import InputDefinition
from qbulktest.errors import TestCaseFormError


def _question(**overrides) -> Question:
    values = dict(
        id=7,
        name="Q",
        category=1,
        inputs={"ans1": InputDefinition("ans1"), "ans2": InputDefinition("ans2")},
        prts={"prt1": PrtDefinition("prt1")},
    )
    values.update(overrides)
    return Question(**values)


def test_variant_seeds_defaults_to_implicit_seed() -> None:
    assert _question().variant_seeds() == (None,)
    assert _question(deployedseeds=(123, 456)).variant_seeds() == (123, 456)


def test_with_seed_override_returns_new_question() -> None:
    question = _question(seed=3)
    variant = with_seed_override(question, 99)
    assert variant.seed == 99
    assert question.seed == 3
    assert variant is not question
    assert variant.prts is question.prts


def test_question_mappings_are_read_only() -> None:
    inputs = {"ans1": InputDefinition("ans1")}
    question = _question(inputs=inputs)
    inputs["ans2"] = InputDefinition("ans2")
    assert list(question.inputs) == ["ans1"]
    with pytest.raises(TypeError):
        question.inputs["ans3"] = InputDefinition("ans3")  # type: ignore[index]
    with pytest.raises(TypeError):
        with_seed_override(question, 5).prts["prt2"] = PrtDefinition("prt2")  # type: ignore[index]
    assert list(question.prts) == ["prt1"]


def test_prt_state_answernote_uses_last_note() -> None:
    state = PrtState(score=1.0, penalty=0.0, answernotes=("prt1-1-F", "prt1-2-T"))
    assert state.answernote == "prt1-2-T"
    assert PrtState(score=None, penalty=None).answernote == "NULL"
    assert PrtState.not_evaluated().score is None


def test_expected_null() -> None:
    expected = ExpectedResult.null()
    assert expected.is_null
    assert expected.answernote == "NULL"


def test_from_form_builds_typed_case() -> None:
    data = {
        "ans1": "x^2",
        "ans2": None,
        "prt1score": "1",
        "prt1penalty": "0",
        "prt1answernote": " prt1-1-T ",
        "unrelated": "ignored",
    }
    case = TestCase.from_form(_question(), data, testcase=4)
    assert case.inputs == {"ans1": "x^2", "ans2": ""}
    assert case.expected["prt1"] == ExpectedResult(score=1.0, penalty=0.0, answernote="prt1-1-T")
    assert case.identifier() == "test4"


def test_from_form_blank_numbers_mean_null() -> None:
    data = {"prt1score": "", "prt1penalty": "  ", "prt1answernote": "NULL"}
    case = TestCase.from_form(_question(), data)
    assert case.expected["prt1"].is_null
    assert case.identifier() == "new"


@pytest.mark.parametrize(
    "data, message",
    [
        ({"prt1score": "1"}, "Missing answer note"),
        ({"prt1score": "abc", "prt1answernote": "n"}, "must be a number"),
        ({"prt1score": "1.5", "prt1answernote": "n"}, "between 0 and 1"),
    ],
)
def test_from_form_rejects_bad_data(data, message) -> None:
    with pytest.raises(TestCaseFormError, match=message):
        TestCase.from_form(_question(), data)


def test_to_form_flattens_expectations() -> None:
    case = TestCase(
        inputs={"ans1": "3"},
        expected={"prt1": ExpectedResult(score=None, penalty=None, answernote="NULL")},
    )
    assert case.to_form() == {
        "ans1": "3",
        "prt1score": "",
        "prt1penalty": "",
        "prt1answernote": "NULL",
    }
