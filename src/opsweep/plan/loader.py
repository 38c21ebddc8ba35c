"""Sweep plan loader combining CLI options, YAML files and compiled-in sweeps."""
from __future__ import annotations

import fnmatch
import pathlib
from typing import Any, Dict, List, Mapping, Optional

import yaml
from jsonschema import Draft7Validator

from opsweep.backends import BackendManager, backend_manager
from opsweep.core.runner import SweepCase, plan_cases
from opsweep.sweeps import SWEEPS, Sweep, get_sweep

from .models import RunOptions, RunSettings, SweepPlan
from .schema import PLAN_SCHEMA


class PlanError(ValueError):
    """Raised when a plan file is malformed or names unknown sweeps/tests."""


def build_sweep_plan(
    options: RunOptions,
    *,
    manager: BackendManager | None = None,
) -> SweepPlan:
    manager = manager or backend_manager
    raw = load_plan_file(options.plan_path)
    settings = _build_run_settings(options, raw, manager)
    sweeps = _resolve_sweeps(options, raw)
    if not sweeps:
        raise PlanError("No sweep tests selected")
    filters = options.filters or tuple(raw.get("filters", ()))
    return SweepPlan(sweeps=sweeps, settings=settings, filters=tuple(filters))


def load_plan_file(path: Optional[str]) -> Mapping[str, Any]:
    if not path:
        return {}
    try:
        data = yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise PlanError(f"Failed to parse plan {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise PlanError("Plan file must contain a mapping at the top level")
    errors = sorted(Draft7Validator(PLAN_SCHEMA).iter_errors(data), key=lambda err: list(err.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(part) for part in err.path) or '<root>'}: {err.message}" for err in errors
        )
        raise PlanError(f"Invalid plan {path}: {details}")
    return data


def _build_run_settings(options: RunOptions, raw: Mapping[str, Any], manager: BackendManager) -> RunSettings:
    seed = options.seed if options.seed is not None else raw.get("seed", 0)
    workers = options.workers if options.workers is not None else raw.get("workers", 1)
    fail_fast = options.fail_fast or bool(raw.get("fail_fast", False))
    backends = tuple(options.backends or raw.get("backends") or manager.names())
    report_cfg = raw.get("report", {}) if isinstance(raw.get("report"), Mapping) else {}
    report_format = options.report_format or report_cfg.get("format", "terminal")
    report_path = options.report_path or report_cfg.get("path")
    color_default = bool(report_cfg.get("color", True))
    color = options.color if options.color is not None else color_default
    return RunSettings(
        seed=int(seed),
        workers=int(workers),
        fail_fast=bool(fail_fast),
        backends=backends,
        report_format=report_format,
        report_path=report_path,
        color=color,
    )


def _resolve_sweeps(options: RunOptions, raw: Mapping[str, Any]) -> List[Sweep]:
    plan_entries = _normalize_plan_entries(raw.get("sweeps") or {})
    if options.sweeps:
        names = list(_normalize_plan_entries({name: None for name in options.sweeps}))
    elif plan_entries:
        names = list(plan_entries)
    else:
        names = [sweep.name for sweep in SWEEPS]
    cli_values = _normalize_plan_entries(options.value_overrides)

    sweeps: List[Sweep] = []
    for name in names:
        sweep = get_sweep(name)
        entry = plan_entries.get(name, {})
        values = dict(entry.get("values") or {})
        values.update(cli_values.get(name, {}))
        try:
            if values:
                sweep = sweep.with_values(values)
            test_names = _select_tests(sweep, options.tests, entry.get("tests"))
        except KeyError as exc:
            raise PlanError(str(exc.args[0])) from exc
        if test_names:
            sweeps.append(sweep.with_tests(test_names))
    if options.tests:
        known = {test.name for sweep in sweeps for test in sweep.tests}
        missing = [name for name in options.tests if name not in known]
        if missing:
            raise PlanError(f"Unknown or deselected sweep test(s): {', '.join(missing)}")
    return sweeps


def _select_tests(sweep: Sweep, cli_tests, plan_tests) -> List[str]:
    if plan_tests:
        for name in plan_tests:
            sweep.test(name)
    available = list(plan_tests) if plan_tests else [test.name for test in sweep.tests]
    if cli_tests:
        return [name for name in available if name in cli_tests]
    return available


def _normalize_plan_entries(entries: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    normalized: Dict[str, Dict[str, Any]] = {}
    for key, value in entries.items():
        try:
            name = get_sweep(str(key)).name
        except KeyError as exc:
            raise PlanError(str(exc.args[0])) from exc
        normalized[name] = dict(value or {})
    return normalized


def resolve_cases(plan: SweepPlan) -> List[SweepCase]:
    """Expand the plan's sweeps and keep cases matching any filter glob."""

    cases = plan_cases(plan.sweeps, plan.settings.backends)
    if not plan.filters:
        return cases
    return [
        case
        for case in cases
        if any(fnmatch.fnmatchcase(case.identifier(), pattern) for pattern in plan.filters)
    ]
