"""Terminal reporter rendering progress and summaries."""
from __future__ import annotations

import time
from typing import Sequence

import click
from colorama import Fore, Style

from opsweep.core.results import CaseResult
from opsweep.plan.models import SweepPlan

from .base import Reporter

STATUS_COLORS = {
    "passed": Fore.GREEN,
    "failed": Fore.RED,
    "error": Fore.RED,
    "skipped": Fore.YELLOW,
}

STATUS_LABELS = {
    "passed": "PASS",
    "failed": "FAIL",
    "error": "ERROR",
    "skipped": "SKIP",
}


class TerminalReporter(Reporter):
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True, show_skipped: bool = False) -> None:
        self._use_color = use_color
        self._show_skipped = show_skipped
        self._start_time = 0.0
        self._failures: list[tuple[int, CaseResult]] = []

    def on_start(self, plan: SweepPlan, total: int) -> None:
        self._start_time = time.perf_counter()
        self._failures.clear()
        settings = plan.settings
        click.echo(
            self._styled(
                f"Starting sweep: {total} case(s) on {','.join(settings.backends)} "
                f"seed={settings.seed} workers={settings.workers} fail_fast={settings.fail_fast}",
                Fore.CYAN,
            )
        )

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        if result.status == "skipped" and not self._show_skipped:
            return
        ms = result.duration_s * 1000
        label = self._styled(f"{STATUS_LABELS.get(result.status, result.status.upper()):<5}", STATUS_COLORS.get(result.status))
        click.echo(f"[{index}/{total}] {label} {result.case.identifier()} ({ms:.2f} ms)")
        if result.counts_as_failure:
            self._failures.append((index, result))
            self._print_failure_details(result)

    def on_complete(self, results: Sequence[CaseResult]) -> None:
        duration = time.perf_counter() - self._start_time
        counts = {status: sum(1 for r in results if r.status == status) for status in STATUS_LABELS}
        color = Fore.GREEN if not self._failures else Fore.RED
        click.echo(
            self._styled(
                f"Summary: total={len(results)} passed={counts['passed']} failed={counts['failed']} "
                f"errors={counts['error']} skipped={counts['skipped']} duration={duration:.2f}s",
                color,
            )
        )
        if self._failures:
            click.echo(self._styled("Failure details:", Fore.RED))
            for index, result in self._failures:
                click.echo(f"  [{index}] {result.case.identifier()} -> {result.status}")
                self._print_failure_details(result, indent="    ")

    def _styled(self, text: str, color: str | None) -> str:
        if not self._use_color or not color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def _print_failure_details(self, result: CaseResult, *, indent: str = "    ") -> None:
        case = result.case
        test = case.test
        dims = ", ".join(f"{name}={value}" for name, value in case.configuration.named_dims())
        click.echo(
            f"{indent}backend={case.configuration.backend_id} dims=({dims}) seed={result.seed} "
            f"modes={test.ref_mode.value}->{test.cand_mode.value} tol={test.tolerance.max_abs}"
        )
        if result.error:
            click.echo(f"{indent}error: {result.error}")
        outcome = result.outcome
        if outcome is None:
            if not result.error:
                click.echo(f"{indent}comparison data unavailable")
            return
        percent = (outcome.mismatched / outcome.total * 100) if outcome.total else 0.0
        click.echo(
            f"{indent}mismatched {outcome.mismatched}/{outcome.total} ({percent:.2f}%) "
            f"max_abs={outcome.max_abs_error:.3e} idx={outcome.max_error_index}"
        )
        if outcome.candidate_value is not None:
            click.echo(
                f"{indent}  candidate={outcome.candidate_value} reference={outcome.reference_value}"
            )
