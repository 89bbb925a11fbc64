"""CLI entry point for qbulktest."""
from __future__ import annotations

import contextlib
import logging
import sys
from typing import Dict, Iterator, Optional, Tuple

import click
import yaml

from qbulktest import __version__, bootstrap
from qbulktest.bulk import BulkTester, ExecutionEnvironment, ProgressSink
from qbulktest.config import Settings, load_settings
from qbulktest.core import Tolerance
from qbulktest.editor import TestCaseEditor
from qbulktest.engines import EvaluationEngine, resolve_engine
from qbulktest.errors import QBulkTestError
from qbulktest.logging_setup import setup_console_logging
from qbulktest.reporting import HtmlReporter, JsonReporter, TerminalReporter
from qbulktest.store import YamlQuestionBank, load_bank
from qbulktest.utils import split_assignment


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class CliState:
    """Holds global CLI options shared by every sub-command."""

    def __init__(self, verbose: bool, config_path: Optional[str], bank: Optional[str], engine: Optional[str]) -> None:
        self.verbose = verbose
        self.config_path = config_path
        self.bank = bank
        self.engine = engine

    def settings(self, **overrides: object) -> Settings:
        values = {"bank": self.bank, "engine": self.engine}
        values.update(overrides)
        return load_settings(self.config_path, values)

    def open_store(self, settings: Settings) -> YamlQuestionBank:
        if not settings.bank:
            raise click.UsageError("No question bank given (use --bank or QBULKTEST_BANK).")
        return load_bank(settings.bank)

    def open_engine(self, settings: Settings) -> EvaluationEngine:
        try:
            return resolve_engine(settings.engine)
        except KeyError as exc:
            raise click.ClickException(str(exc.args[0])) from exc
        except (ImportError, AttributeError, TypeError, ValueError) as exc:
            raise click.ClickException(f"Cannot load engine '{settings.engine}': {exc}") from exc


@contextlib.contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except QBulkTestError as exc:
        raise click.ClickException(str(exc)) from exc


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"qbulktest {__version__}")
    raise click.exceptions.Exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the qbulktest version and exit.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML settings file.",
)
@click.option("--bank", type=click.Path(dir_okay=False), help="YAML question bank file.")
@click.option("--engine", type=str, help="Engine name or dotted path (default: builtin).")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_path: Optional[str],
    bank: Optional[str],
    engine: Optional[str],
) -> None:
    """Run stored question tests in bulk and edit single test cases."""

    setup_console_logging(logging.DEBUG if verbose else logging.WARNING)
    bootstrap()
    ctx.obj = CliState(verbose=verbose, config_path=config_path, bank=bank, engine=engine)


@cli.command()
@click.pass_obj
def contexts(state: CliState) -> None:
    """List contexts holding STACK questions, with their question counts."""

    with _translate_errors():
        settings = state.settings()
        store = state.open_store(settings)
        tester = BulkTester(store, state.open_engine(settings))
        counts = tester.questions_by_context()
        if not counts:
            click.echo("No contexts contain STACK questions.")
            return
        for context in tester.contexts_in_scope():
            click.echo(f"{context.id}\t{context.name}\t{counts[context.id]}")


@cli.command()
@click.option("--context", "context_ids", type=int, multiple=True, help="Context id to test (repeatable). Default: all.")
@click.option(
    "--report",
    "report_format",
    type=click.Choice(["terminal", "html", "json"]),
    default="terminal",
    show_default=True,
    help="Report format.",
)
@click.option("--report-path", type=click.Path(dir_okay=False), help="Write the html/json report to this path.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.option("--time-limit", type=float, help="Overall time budget in seconds (extended per variant).")
@click.option("--variant-time", type=int, help="Seconds guaranteed to each variant once a budget is armed.")
@click.pass_obj
def run(
    state: CliState,
    context_ids: Tuple[int, ...],
    report_format: str,
    report_path: Optional[str],
    no_color: bool,
    time_limit: Optional[float],
    variant_time: Optional[int],
) -> None:
    """Run every question test of every deployed variant."""

    with _translate_errors():
        settings = state.settings(time_limit=time_limit, variant_time_limit=variant_time)
        store = state.open_store(settings)
        engine = state.open_engine(settings)
        environment = ExecutionEnvironment(variant_time_limit=settings.variant_time_limit, streams=[sys.stdout])
        with contextlib.ExitStack() as stack:
            sink = _build_sink(stack, environment, settings, report_format, report_path, use_color=not no_color)
            tester = BulkTester(
                store,
                engine,
                environment=environment,
                progress=sink,
                tolerance=Tolerance(absolute=settings.tolerance),
            )
            with environment.time_budget(settings.time_limit):
                if context_ids:
                    selected = [store.get_context(context_id) for context_id in context_ids]
                    all_passed, _ = tester.run_contexts(selected)
                else:
                    all_passed, _ = tester.run_all_contexts()
    raise click.exceptions.Exit(0 if all_passed else 1)


def _build_sink(
    stack: contextlib.ExitStack,
    environment: ExecutionEnvironment,
    settings: Settings,
    report_format: str,
    report_path: Optional[str],
    *,
    use_color: bool,
) -> ProgressSink:
    if report_format == "json":
        return JsonReporter(path=report_path)
    if report_format == "html":
        stream = sys.stdout
        if report_path:
            stream = stack.enter_context(open(report_path, "w", encoding="utf-8"))
            environment.add_stream(stream)
        return HtmlReporter(stream, base_url=settings.base_url, index_url=settings.index_url)
    return TerminalReporter(use_color=use_color)


@cli.command("test-question")
@click.option("--question", "question_id", type=int, required=True, help="Question id.")
@click.option("--seed", type=int, help="Run only this variant.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def test_question(state: CliState, question_id: int, seed: Optional[int], no_color: bool) -> None:
    """Run the stored tests of one question."""

    with _translate_errors():
        settings = state.settings()
        store = state.open_store(settings)
        reporter = TerminalReporter(use_color=not no_color)
        tester = BulkTester(store, state.open_engine(settings), tolerance=Tolerance(absolute=settings.tolerance))
        question = store.load_question(question_id)
        upgrade_errors = tester.check_version(question)
        if upgrade_errors:
            reporter.on_upgrade_failure(question, upgrade_errors)
            raise click.exceptions.Exit(1)
        tests = store.load_test_cases(question_id)
        if not tests:
            click.echo(f"Question {question.name} has no tests.")
        seeds = (seed,) if seed is not None else question.variant_seeds()
        all_passed = True
        for variant_seed in seeds:
            result = tester.execute_variant(question, tests, variant_seed)
            reporter.on_variant_result(result)
            all_passed = all_passed and result.passed
    raise click.exceptions.Exit(0 if all_passed else 1)


@cli.command()
@click.option("--question", "question_id", type=int, required=True, help="Question id.")
@click.option("--seed", type=int, help="Variant seed to render.")
@click.pass_obj
def preview(state: CliState, question_id: int, seed: Optional[int]) -> None:
    """Render one question variant read-only, with its variables."""

    with _translate_errors():
        settings = state.settings()
        editor = TestCaseEditor(state.open_store(settings), state.open_engine(settings))
        view = editor.preview(question_id, seed)
    click.echo(view.title)
    click.echo(f"seed: {view.seed}")
    click.echo(view.rendered)
    click.echo("Question variables:")
    for key, value in view.variables.items():
        click.echo(f"  {key} = {value}")
    click.echo("Question text:")
    click.echo(view.questiontext)
    for error in view.runtime_errors:
        click.echo(f"error: {error}", err=True)


@cli.command("show-test")
@click.option("--question", "question_id", type=int, required=True, help="Question id.")
@click.option("--testcase", type=int, help="Test case number (blank form when omitted).")
@click.pass_obj
def show_test(state: CliState, question_id: int, testcase: Optional[int]) -> None:
    """Print the form data of one stored test case."""

    with _translate_errors():
        settings = state.settings()
        editor = TestCaseEditor(state.open_store(settings), state.open_engine(settings))
        data = editor.form_data(question_id, testcase)
    click.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


@cli.command("edit-test")
@click.option("--question", "question_id", type=int, required=True, help="Question id.")
@click.option("--testcase", type=int, help="Test case number to replace (new case when omitted).")
@click.option("--input", "input_specs", multiple=True, help="Input value as NAME=VALUE (repeatable).")
@click.option(
    "--expect",
    "expect_specs",
    multiple=True,
    help="Expected PRT outcome as PRT=SCORE,PENALTY,NOTE (repeatable).",
)
@click.pass_obj
def edit_test(
    state: CliState,
    question_id: int,
    testcase: Optional[int],
    input_specs: Tuple[str, ...],
    expect_specs: Tuple[str, ...],
) -> None:
    """Create or update one stored test case."""

    with _translate_errors():
        settings = state.settings()
        editor = TestCaseEditor(state.open_store(settings), state.open_engine(settings))
        data = editor.form_data(question_id, testcase)
        data.update(_parse_inputs(input_specs))
        data.update(_parse_expectations(expect_specs))
        saved = editor.submit(question_id, data, testcase)
    click.echo(f"Saved test case {saved}")


def _parse_inputs(specs: Tuple[str, ...]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for item in specs:
        try:
            key, value = split_assignment(item)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--input") from exc
        values[key] = value
    return values


def _parse_expectations(specs: Tuple[str, ...]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for item in specs:
        try:
            prtname, raw = split_assignment(item)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--expect") from exc
        parts = raw.split(",", 2)
        if len(parts) != 3:
            raise click.BadParameter(f"Expected SCORE,PENALTY,NOTE in '{item}'", param_hint="--expect")
        score, penalty, note = (part.strip() for part in parts)
        values[f"{prtname}score"] = score
        values[f"{prtname}penalty"] = penalty
        values[f"{prtname}answernote"] = note
    return values


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="qbulktest", standalone_mode=True)
    except click.ClickException as err:  # pragma: no cover - click handles display
        err.show()
        return err.exit_code
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
