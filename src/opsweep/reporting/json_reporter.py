"""JSON reporter emitting structured sweep results."""
from __future__ import annotations

import datetime as dt
import json
import math
import pathlib
from typing import Any, Dict, Sequence

import click
from jsonschema import validate

from opsweep.core.results import CaseResult
from opsweep.plan.models import SweepPlan

from .base import Reporter
from .schema import JSON_SCHEMA_V1, SCHEMA_VERSION


class JsonReporter(Reporter):
    """Writes results to a JSON file validated against the schema."""

    def __init__(self, path: str | None) -> None:
        self._path = pathlib.Path(path) if path else None
        self._records: list[Dict[str, Any]] = []
        self._plan: SweepPlan | None = None
        self._start_time = 0.0

    def on_start(self, plan: SweepPlan, total: int) -> None:
        self._plan = plan
        self._records.clear()
        self._start_time = _now().timestamp()

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        self._records.append(case_to_dict(result))

    def on_complete(self, results: Sequence[CaseResult]) -> None:
        if self._plan is None:
            return
        payload = build_payload(self._plan, results, self._records, _now().timestamp() - self._start_time)
        text = json.dumps(payload, indent=2)
        if self._path is None:
            click.echo(text)
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(text, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem protection
            raise RuntimeError(f"Failed to write JSON report to {self._path}: {exc}") from exc
        click.echo(f"JSON report written to {self._path}")


def build_payload(
    plan: SweepPlan, results: Sequence[CaseResult], records: Sequence[Dict[str, Any]], duration: float
) -> Dict[str, Any]:
    payload = {
        "schema_version": SCHEMA_VERSION,
        "generated_at": _now().isoformat(timespec="seconds").replace("+00:00", "Z"),
        "summary": _build_summary(plan, results, duration),
        "cases": list(records),
    }
    validate(instance=payload, schema=JSON_SCHEMA_V1)
    return payload


def _build_summary(plan: SweepPlan, results: Sequence[CaseResult], duration: float) -> Dict[str, Any]:
    return {
        "total": len(results),
        "passed": sum(1 for result in results if result.status == "passed"),
        "failed": sum(1 for result in results if result.status == "failed"),
        "skipped": sum(1 for result in results if result.status == "skipped"),
        "errors": sum(1 for result in results if result.status == "error"),
        "backends": list(plan.settings.backends),
        "seed": plan.settings.seed,
        "duration_s": duration,
    }


def case_to_dict(result: CaseResult) -> Dict[str, Any]:
    case = result.case
    test = case.test
    record: Dict[str, Any] = {
        "id": case.identifier(),
        "sweep": case.sweep.name,
        "test": test.name,
        "status": result.status,
        "duration_ms": result.duration_s * 1000,
        "backend": case.configuration.backend_id,
        "dims": dict(case.configuration.named_dims()),
        "reference_mode": test.ref_mode.value,
        "candidate_mode": test.cand_mode.value,
        "tolerance": test.tolerance.max_abs,
        "seed": result.seed,
    }
    if result.error:
        record["error"] = result.error
    if result.outcome:
        outcome = result.outcome
        record["comparison"] = {
            "passed": outcome.passed,
            # JSON has no infinity; NaN/inf differences are reported as -1.
            "max_abs_error": outcome.max_abs_error if math.isfinite(outcome.max_abs_error) else -1.0,
            "mismatched": outcome.mismatched,
            "total": outcome.total,
            "max_error_index": list(outcome.max_error_index) if outcome.max_error_index is not None else None,
        }
    return record


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)
