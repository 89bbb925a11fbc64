"""Result data structures produced by the bulk tester."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .comparator import TestResult
from .models import Context


REPORT_SECTIONS = ("failingtests", "notests", "nogeneralfeedback", "failingupgrades")


def format_summary(passes: int, fails: int, errors: Sequence[str] = ()) -> str:
    message = f"passes={passes},fails={fails}"
    if errors:
        message += "; runtime errors: " + " ".join(errors)
    return message


@dataclass
class SeedCacheResult:
    """Outcome of instantiating one variant to seed the evaluation caches."""

    seed: Optional[int]
    rendered: str = ""
    general_feedback: str = ""
    summary: str = ""
    errors: Tuple[str, ...] = tuple()


@dataclass
class VariantResult:
    """Outcome of running every stored test case against one variant."""

    question_id: int
    question_name: str
    seed: Optional[int]
    passes: int
    fails: int
    errors: Tuple[str, ...] = tuple()
    context: Optional[Context] = None
    tests: List[TestResult] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def passed(self) -> bool:
        return self.fails == 0 and not self.errors

    @property
    def message(self) -> str:
        return format_summary(self.passes, self.fails, self.errors)

    def label(self) -> str:
        parts = []
        if self.context is not None:
            parts.append(self.context.name)
        parts.append(self.question_name)
        if self.seed is not None:
            parts.append(f"seed {self.seed}")
        return " ".join(parts)


@dataclass(frozen=True)
class ReportEntry:
    """A single line of one report section, identifying the question variant."""

    question_id: int
    question_name: str
    message: str = ""
    seed: Optional[int] = None
    context: Optional[Context] = None

    def label(self) -> str:
        parts = []
        if self.context is not None:
            parts.append(self.context.name)
        parts.append(self.question_name)
        if self.seed is not None:
            parts.append(f"seed {self.seed}")
        text = " ".join(parts)
        if self.message:
            return f"{text}: {self.message}"
        return text


@dataclass(frozen=True)
class RunReport:
    """Diagnostics gathered by a bulk run, one tuple per report section."""

    failingtests: Tuple[ReportEntry, ...] = tuple()
    notests: Tuple[ReportEntry, ...] = tuple()
    nogeneralfeedback: Tuple[ReportEntry, ...] = tuple()
    failingupgrades: Tuple[ReportEntry, ...] = tuple()

    def sections(self) -> Iterator[Tuple[str, Tuple[ReportEntry, ...]]]:
        """Yield the non-empty sections in their fixed order."""

        for name in REPORT_SECTIONS:
            entries = getattr(self, name)
            if entries:
                yield name, entries

    def as_dict(self) -> Dict[str, List[ReportEntry]]:
        return {name: list(getattr(self, name)) for name in REPORT_SECTIONS}

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in REPORT_SECTIONS)

    def merge(self, other: "RunReport") -> "RunReport":
        return RunReport(
            **{name: getattr(self, name) + getattr(other, name) for name in REPORT_SECTIONS}
        )


class RunReportBuilder:
    """Mutable accumulator turned into a ``RunReport`` once the run ends."""

    def __init__(self) -> None:
        self._sections: Dict[str, List[ReportEntry]] = {name: [] for name in REPORT_SECTIONS}

    def add(self, section: str, entry: ReportEntry) -> None:
        if section not in self._sections:
            raise KeyError(f"Unknown report section '{section}'")
        self._sections[section].append(entry)

    def build(self) -> RunReport:
        return RunReport(**{name: tuple(entries) for name, entries in self._sections.items()})
