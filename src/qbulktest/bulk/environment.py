"""Resource governance for long bulk runs.

Every variant instantiation builds a sizeable temporary object graph and can
take a data-dependent amount of time. The runner therefore calls
``before_variant()`` ahead of each one: partial output is flushed, the armed
time budget is raised so that at least ``variant_time_limit`` seconds remain,
and garbage is collected.
"""
from __future__ import annotations

import contextlib
import gc
import logging
import signal
import sys
from typing import IO, Any, Iterator, Optional, Sequence

from qbulktest.errors import EnvironmentFailure

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_TIME_LIMIT = 60


class ExecutionEnvironment:
    """Default hooks: flush streams, extend a SIGALRM budget, ``gc.collect()``."""

    def __init__(
        self,
        *,
        variant_time_limit: int = DEFAULT_VARIANT_TIME_LIMIT,
        streams: Optional[Sequence[IO[Any]]] = None,
        collect_garbage: bool = True,
    ) -> None:
        self.variant_time_limit = variant_time_limit
        self._streams = list(streams) if streams is not None else [sys.stdout]
        self._collect = collect_garbage
        self._armed = False
        self._previous_handler: Any = None

    def add_stream(self, stream: IO[Any]) -> None:
        if stream not in self._streams:
            self._streams.append(stream)

    def before_variant(self) -> None:
        self.flush_output()
        self.extend_time_budget(self.variant_time_limit)
        self.collect_garbage()

    def after_variant(self) -> None:
        self.flush_output()

    def flush_output(self) -> None:
        for stream in self._streams:
            stream.flush()

    def collect_garbage(self) -> int:
        if not self._collect:
            return 0
        return gc.collect()

    @property
    def budget_armed(self) -> bool:
        return self._armed

    def remaining_budget(self) -> float:
        if not self._armed:
            return 0.0
        return signal.getitimer(signal.ITIMER_REAL)[0]

    def extend_time_budget(self, seconds: float) -> None:
        """Make sure at least ``seconds`` remain; never shortens the budget."""

        if not self._armed:
            return
        if seconds <= 0:
            raise EnvironmentFailure(f"Cannot extend the time budget by {seconds} seconds")
        if self.remaining_budget() < seconds:
            signal.setitimer(signal.ITIMER_REAL, seconds)

    def arm_time_budget(self, seconds: float) -> None:
        if seconds <= 0:
            raise EnvironmentFailure("Time budget must be positive")
        if not hasattr(signal, "setitimer"):
            raise EnvironmentFailure("Time budgets need SIGALRM, which this platform lacks")
        try:
            self._previous_handler = signal.signal(signal.SIGALRM, _on_budget_exhausted)
        except ValueError as exc:
            raise EnvironmentFailure(f"Cannot install the time budget handler: {exc}") from exc
        signal.setitimer(signal.ITIMER_REAL, seconds)
        self._armed = True
        logger.debug("Armed a %.1fs time budget", seconds)

    def disarm_time_budget(self) -> None:
        if not self._armed:
            return
        signal.setitimer(signal.ITIMER_REAL, 0)
        if self._previous_handler is not None:
            signal.signal(signal.SIGALRM, self._previous_handler)
        self._previous_handler = None
        self._armed = False

    @contextlib.contextmanager
    def time_budget(self, seconds: Optional[float]) -> Iterator["ExecutionEnvironment"]:
        """Arm a budget for the duration of the block; ``None`` means unlimited."""

        if seconds is None:
            yield self
            return
        self.arm_time_budget(seconds)
        try:
            yield self
        finally:
            self.disarm_time_budget()


def _on_budget_exhausted(signum: int, frame: Any) -> None:
    raise EnvironmentFailure("Execution time budget exhausted")
