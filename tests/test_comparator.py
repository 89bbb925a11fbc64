from qbulktest.core import ExpectedResult, PrtState, TestCase, Tolerance
from qbulktest.core.comparator import compare_test_case


def _case(**expected: ExpectedResult) -> TestCase:
    return TestCase(inputs={"ans1": "1"}, expected=expected, testcase=1)


def test_compare_passes_on_exact_match() -> None:
    case = _case(prt1=ExpectedResult(score=1.0, penalty=0.0, answernote="prt1-1-T"))
    actual = {"prt1": PrtState(score=1.0, penalty=0.0, answernotes=("prt1-1-T",))}
    result = compare_test_case(case, actual, seed=5)
    assert result.passed
    assert result.seed == 5
    assert result.failed_prts() == []


def test_compare_allows_float_noise() -> None:
    case = _case(prt1=ExpectedResult(score=0.3, penalty=0.1, answernote="n"))
    actual = {"prt1": PrtState(score=0.1 + 0.2, penalty=0.1000001, answernotes=("n",))}
    assert compare_test_case(case, actual).passed
    assert not compare_test_case(case, actual, tolerance=Tolerance(absolute=1e-9)).passed


def test_single_mismatched_prt_fails_case() -> None:
    case = _case(
        prt1=ExpectedResult(score=1.0, penalty=0.0, answernote="a"),
        prt2=ExpectedResult(score=1.0, penalty=0.0, answernote="b"),
    )
    actual = {
        "prt1": PrtState(score=1.0, penalty=0.0, answernotes=("a",)),
        "prt2": PrtState(score=0.0, penalty=0.1, answernotes=("c",)),
    }
    result = compare_test_case(case, actual)
    assert not result.passed
    failed = result.failed_prts()
    assert [item.prt for item in failed] == ["prt2"]
    assert failed[0].reason == (
        "score expected 1 got 0; penalty expected 0 got 0.1; answernote expected 'b' got 'c'"
    )


def test_null_expectation_matches_unevaluated_prt() -> None:
    case = _case(prt1=ExpectedResult.null())
    assert compare_test_case(case, {"prt1": PrtState.not_evaluated()}).passed
    fired = {"prt1": PrtState(score=0.0, penalty=0.1, answernotes=("NULL",))}
    assert not compare_test_case(case, fired).passed


def test_missing_prt_is_reported() -> None:
    case = _case(prt9=ExpectedResult(score=1.0, penalty=0.0, answernote="x"))
    result = compare_test_case(case, {})
    assert not result.passed
    assert result.prts[0].reason == "prt missing"
    assert result.prts[0].actual is None


def test_only_final_note_is_compared() -> None:
    case = _case(prt1=ExpectedResult(score=1.0, penalty=0.0, answernote="prt1-2-T"))
    actual = {"prt1": PrtState(score=1.0, penalty=0.0, answernotes=("prt1-1-F", "prt1-2-T"))}
    assert compare_test_case(case, actual).passed
