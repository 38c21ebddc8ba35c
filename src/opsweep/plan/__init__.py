"""Sweep plans: CLI options and YAML files narrowing the built-in sweeps."""

from .loader import PlanError, build_sweep_plan, load_plan_file, resolve_cases
from .models import RunOptions, RunSettings, SweepPlan

__all__ = [
    "PlanError",
    "RunOptions",
    "RunSettings",
    "SweepPlan",
    "build_sweep_plan",
    "load_plan_file",
    "resolve_cases",
]
