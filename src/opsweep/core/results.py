"""Result data structures produced by the sweep runner."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .comparator import ComparisonOutcome

if TYPE_CHECKING:
    from .runner import SweepCase

STATUSES = ("passed", "failed", "skipped", "error")


@dataclass
class CaseResult:
    """Outcome of evaluating a single sweep case."""

    case: SweepCase
    status: str
    duration_s: float
    outcome: Optional[ComparisonOutcome] = None
    error: Optional[str] = None
    seed: Optional[int] = None

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def counts_as_failure(self) -> bool:
        return self.status in ("failed", "error")

