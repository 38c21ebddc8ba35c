"""Reporter interface definitions."""
from __future__ import annotations

from typing import List, Sequence

from opsweep.core.results import CaseResult
from opsweep.plan.models import SweepPlan


class Reporter:
    """Interface for output renderers."""

    def on_start(self, plan: SweepPlan, total: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:  # pragma: no cover
        raise NotImplementedError

    def on_complete(self, results: Sequence[CaseResult]) -> None:  # pragma: no cover
        raise NotImplementedError


class ReportManager:
    """Dispatches lifecycle callbacks to multiple reporters."""

    def __init__(self, reporters: Sequence[Reporter]) -> None:
        self._reporters = list(reporters)

    def start(self, plan: SweepPlan, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_start(plan, total)

    def handle_result(self, result: CaseResult, index: int, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_case_result(result, index, total)

    def complete(self, results: Sequence[CaseResult]) -> None:
        for reporter in self._reporters:
            reporter.on_complete(results)

    def reporters(self) -> List[Reporter]:
        return list(self._reporters)
