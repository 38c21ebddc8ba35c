"""Dataclasses describing a sweep run."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

from opsweep.sweeps import Sweep


@dataclass
class RunSettings:
    seed: int
    workers: int
    fail_fast: bool
    backends: Tuple[str, ...]
    report_format: str = "terminal"
    report_path: Optional[str] = None
    color: bool = True


@dataclass
class SweepPlan:
    sweeps: List[Sweep]
    settings: RunSettings
    filters: Tuple[str, ...] = ()


@dataclass
class RunOptions:
    """Values supplied on the command line; ``None`` defers to the plan file."""

    plan_path: Optional[str] = None
    sweeps: Tuple[str, ...] = tuple()
    tests: Tuple[str, ...] = tuple()
    backends: Tuple[str, ...] = tuple()
    filters: Tuple[str, ...] = tuple()
    value_overrides: Mapping[str, Mapping[str, Sequence[int]]] = field(default_factory=dict)
    seed: Optional[int] = None
    workers: Optional[int] = None
    fail_fast: bool = False
    report_format: Optional[str] = None
    report_path: Optional[str] = None
    color: Optional[bool] = None
