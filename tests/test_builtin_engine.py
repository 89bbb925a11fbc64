import pytest

from qbulktest.core import Question
from qbulktest.core.models import InputDefinition, PrtBranch, PrtDefinition, PrtNode
from qbulktest.engines import BuiltinEngine, DisplayOptions, engine_manager, resolve_engine


def _question(**overrides) -> Question:
    values = dict(
        id=1,
        name="Q",
        category=1,
        stackversion="2023010400",
        variables=(("a", "3"),),
        questiontext="Enter {@a@}. [[input:ans1]] [[validation:ans1]] [[feedback:prt1]]",
        inputs={"ans1": InputDefinition("ans1", teacher_answer="a")},
        prts={
            "prt1": PrtDefinition(
                "prt1",
                nodes=(PrtNode(sans="ans1", tans="a"),),
            )
        },
    )
    values.update(overrides)
    return Question(**values)


def test_builtin_engine_is_registered() -> None:
    assert "builtin" in engine_manager
    assert isinstance(resolve_engine("builtin"), BuiltinEngine)
    assert isinstance(resolve_engine("qbulktest.engines.builtin:BuiltinEngine"), BuiltinEngine)
    with pytest.raises(KeyError, match="No engine registered"):
        resolve_engine("missing")


@pytest.mark.parametrize(
    "version, message",
    [
        ("2023010400", ""),
        (None, "has no STACK version"),
        ("v4.3", "Unrecognised STACK version"),
        ("2012010100", "Re-save it to upgrade"),
    ],
)
def test_validate_version(version, message) -> None:
    result = BuiltinEngine().validate_version(_question(stackversion=version))
    if message:
        assert message in result
    else:
        assert result == ""


def test_instantiate_is_reproducible_per_seed() -> None:
    question = _question(variables=(("a", "rand(1000)"), ("b", "a + 1")))
    engine = BuiltinEngine()
    first = engine.instantiate(question, 17)
    engine.clear_cache()
    second = engine.instantiate(question, 17)
    assert first.variables == second.variables
    assert first.variables["b"] == first.variables["a"] + 1
    assert first.seed == 17


def test_implicit_seed_uses_question_seed_then_zero() -> None:
    engine = BuiltinEngine()
    assert engine.instantiate(_question()).seed == 0
    assert engine.instantiate(_question(seed=8)).seed == 8


def test_render_is_readonly_and_hides_flags() -> None:
    engine = BuiltinEngine()
    usage = engine.instantiate(_question(), 4)
    markup = engine.render(usage, DisplayOptions())
    assert markup.startswith('<div class="que stack" data-seed="4">')
    assert "Enter 3." in markup
    assert '<input type="text" name="ans1" readonly="readonly" />' in markup
    assert "[[validation" not in markup
    assert "[[feedback" not in markup
    assert "questiontestslink" not in markup


def test_evaluate_prts_scores_answers() -> None:
    engine = BuiltinEngine()
    usage = engine.instantiate(_question())
    right = engine.evaluate_prts(usage, {"ans1": "3"})["prt1"]
    assert (right.score, right.penalty, right.answernote) == (1.0, 0.0, "prt1-1-T")
    wrong = engine.evaluate_prts(usage, {"ans1": "2"})["prt1"]
    assert (wrong.score, wrong.penalty, wrong.answernote) == (0.0, 0.1, "prt1-1-F")


@pytest.mark.parametrize("value", ["", "   ", "3 +"])
def test_blank_or_invalid_input_leaves_prt_unevaluated(value) -> None:
    engine = BuiltinEngine()
    usage = engine.instantiate(_question())
    state = engine.evaluate_prts(usage, {"ans1": value})["prt1"]
    assert state.score is None
    assert state.answernote == "NULL"
    assert not usage.has_errors


def test_multi_node_tree_accumulates_score() -> None:
    nodes = (
        PrtNode(
            sans="ans1",
            tans="a",
            test="NumRelative",
            options=0.1,
            true_branch=PrtBranch(score=0.5, note="close", next_node=2),
            false_branch=PrtBranch(score=0, penalty=0.5, note="far"),
        ),
        PrtNode(
            sans="ans1",
            tans="a",
            test="GTE",
            true_branch=PrtBranch(score=0.5, mode="+", note="high"),
            false_branch=PrtBranch(score=0.25, mode="-", note="low"),
        ),
    )
    question = _question(prts={"prt1": PrtDefinition("prt1", nodes=nodes)})
    engine = BuiltinEngine()
    usage = engine.instantiate(question)
    high = engine.evaluate_prts(usage, {"ans1": "3.2"})["prt1"]
    assert high.answernotes == ("close", "high")
    assert (high.score, high.penalty) == (1.0, 0.0)
    low = engine.evaluate_prts(usage, {"ans1": "2.9"})["prt1"]
    assert low.answernotes == ("close", "low")
    assert low.score == pytest.approx(0.25)
    assert low.penalty == 0.1
    far = engine.evaluate_prts(usage, {"ans1": "10"})["prt1"]
    assert (far.score, far.penalty, far.answernote) == (0.0, 0.5, "far")


def test_string_inputs_compare_raw_text() -> None:
    question = _question(
        inputs={"ans1": InputDefinition("ans1", input_type="string")},
        prts={"prt1": PrtDefinition("prt1", nodes=(PrtNode(sans="ans1", tans='"hello world"', test="String"),))},
    )
    engine = BuiltinEngine()
    usage = engine.instantiate(question)
    assert engine.evaluate_prts(usage, {"ans1": "hello world"})["prt1"].score == 1.0
    assert engine.evaluate_prts(usage, {"ans1": "hello"})["prt1"].score == 0.0


def test_variable_errors_are_recorded_on_the_usage() -> None:
    question = _question(variables=(("a", "1/0"), ("b", "2")))
    usage = BuiltinEngine().instantiate(question)
    assert list(usage.runtime_errors) == ["Question variable a: Division by zero in '1/0'"]
    assert "b" not in usage.variables


def test_node_errors_mark_the_note_and_the_usage() -> None:
    nodes = (PrtNode(sans="ans1", tans="missing + 1"),)
    question = _question(prts={"prt1": PrtDefinition("prt1", nodes=nodes, inputs=("ans1",))})
    engine = BuiltinEngine()
    usage = engine.instantiate(question)
    state = engine.evaluate_prts(usage, {"ans1": "1"})["prt1"]
    assert state.answernote == "prt1-1-E"
    assert "PRT prt1 node 1: Unknown variable 'missing'" in usage.runtime_errors


def test_castext_errors_are_reported_on_every_usage() -> None:
    question = _question(generalfeedback="Value {@nope@}")
    engine = BuiltinEngine()
    first = engine.instantiate(question)
    assert engine.general_feedback(first) == "Value "
    second = engine.instantiate(question)
    engine.general_feedback(second)
    assert list(first.runtime_errors) == list(second.runtime_errors) == ["CASText: Unknown variable 'nope'"]


def test_question_variables_are_formatted() -> None:
    engine = BuiltinEngine()
    usage = engine.instantiate(_question(variables=(("a", "0.5 * 4"), ("l", "[1, 2]"))))
    assert engine.question_variables(usage) == {"a": "2", "l": "[1, 2]"}


def test_caches_stay_bounded_over_a_long_batch() -> None:
    from qbulktest.bulk import BulkTester, ExecutionEnvironment
    from qbulktest.store import YamlQuestionBank

    raw_question = {
        "id": 1,
        "name": "Many seeds",
        "stackversion": "2023010400",
        "deployedseeds": list(range(1, 61)),
        "variables": {"a": "rand(100)"},
        "questiontext": "Value {@a@} [[input:ans1]]",
        "generalfeedback": "It was {@a@}.",
        "inputs": {"ans1": {"tans": "a"}},
        "prts": {"prt1": {"nodes": [{"sans": "ans1", "tans": "a"}]}},
    }
    bank = YamlQuestionBank.from_mapping(
        {"contexts": [{"id": 1, "name": "C", "categories": [{"id": 1, "name": "c", "questions": [raw_question]}]}]}
    )
    engine = BuiltinEngine(cache_size=8)
    tester = BulkTester(bank, engine, environment=ExecutionEnvironment(streams=[]))
    all_passed, _ = tester.run_all_tests_for_context(bank.get_context(1))
    assert all_passed
    variants, texts = engine.cache_sizes()
    assert 0 < variants <= 8
    assert 0 < texts <= 8
    question = bank.load_question(1)
    first = tester.seed_cache(question, 1)
    assert tester.seed_cache(question, 1).rendered == first.rendered
    assert first.errors == ()


def test_cache_size_must_be_positive() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        BuiltinEngine(cache_size=0)


def test_oversized_question_variable_becomes_a_runtime_error() -> None:
    usage = BuiltinEngine().instantiate(_question(variables=(("a", "9^9^9"),)))
    assert list(usage.runtime_errors) == ["Question variable a: Integer power exceeds 10000 bits"]
