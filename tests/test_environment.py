import io
import signal
import time

import pytest

from qbulktest.bulk import ExecutionEnvironment
from qbulktest.errors import EnvironmentFailure


class CountingStream(io.StringIO):
    def __init__(self) -> None:
        super().__init__()
        self.flushes = 0

    def flush(self) -> None:
        self.flushes += 1
        super().flush()


def test_hooks_flush_every_stream() -> None:
    first, second = CountingStream(), CountingStream()
    environment = ExecutionEnvironment(streams=[first])
    environment.add_stream(second)
    environment.add_stream(second)
    environment.before_variant()
    environment.after_variant()
    assert (first.flushes, second.flushes) == (2, 2)


def test_garbage_collection_can_be_disabled() -> None:
    assert ExecutionEnvironment(streams=[], collect_garbage=False).collect_garbage() == 0
    assert ExecutionEnvironment(streams=[]).collect_garbage() >= 0


def test_extend_is_noop_without_budget() -> None:
    environment = ExecutionEnvironment(streams=[])
    environment.extend_time_budget(10)
    assert not environment.budget_armed
    assert environment.remaining_budget() == 0.0


def test_time_budget_is_extended_but_never_shortened() -> None:
    environment = ExecutionEnvironment(variant_time_limit=200, streams=[])
    with environment.time_budget(100):
        assert environment.budget_armed
        environment.before_variant()
        assert environment.remaining_budget() > 150
        environment.extend_time_budget(5)
        assert environment.remaining_budget() > 150
        with pytest.raises(EnvironmentFailure):
            environment.extend_time_budget(0)
    assert not environment.budget_armed
    assert signal.getitimer(signal.ITIMER_REAL)[0] == 0


def test_exhausted_budget_raises_environment_failure() -> None:
    environment = ExecutionEnvironment(streams=[])
    with pytest.raises(EnvironmentFailure, match="exhausted"):
        with environment.time_budget(0.05):
            time.sleep(2)
    assert not environment.budget_armed


def test_unlimited_budget_arms_nothing() -> None:
    environment = ExecutionEnvironment(streams=[])
    with environment.time_budget(None) as active:
        assert active is environment
        assert not environment.budget_armed
    with pytest.raises(EnvironmentFailure):
        environment.arm_time_budget(0)
