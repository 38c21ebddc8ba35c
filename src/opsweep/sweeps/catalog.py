"""Compiled-in parameter sweeps: value sets, precision tests and tolerances.

Tolerance literals are empirical and load-bearing for existing pass/fail
behaviour. They are not expected to hold for new shapes or operators without
re-validation.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from opsweep.core.models import OperatorKind, PrecisionMode, TestConfiguration, ToleranceSpec
from opsweep.core.space import expand
from opsweep.graph.builders import BUILDERS, GraphSpec


@dataclass(frozen=True)
class SweepTest:
    """One precision comparison run over every configuration of a sweep."""

    __test__ = False

    name: str
    operator: OperatorKind
    ref_mode: PrecisionMode
    cand_mode: PrecisionMode
    tolerance: ToleranceSpec


@dataclass(frozen=True)
class Sweep:
    name: str
    title: str
    operator: OperatorKind
    dim_names: Tuple[str, ...]
    value_sets: Tuple[Tuple[int, ...], ...]
    tests: Tuple[SweepTest, ...]
    # (name, source) pairs for dimensions the builder derives from a swept one.
    derived: Tuple[Tuple[str, str], ...] = ()

    @property
    def builder(self) -> Callable[..., GraphSpec]:
        return BUILDERS[self.operator]

    def configurations(self, backend_ids: Iterable[str]) -> List[TestConfiguration]:
        return expand(self.value_sets, backend_ids, dim_names=self.dim_names)

    def test(self, name: str) -> SweepTest:
        for test in self.tests:
            if test.name == name:
                return test
        raise KeyError(f"Sweep '{self.name}' has no test '{name}'")

    def with_values(self, overrides: Mapping[str, Sequence[int]]) -> "Sweep":
        """Return a copy with some dimensions' value sets replaced."""

        unknown = set(overrides) - set(self.dim_names)
        if unknown:
            raise KeyError(f"Sweep '{self.name}' has no dimension(s) {sorted(unknown)}")
        value_sets = tuple(
            tuple(int(v) for v in overrides[name]) if name in overrides else values
            for name, values in zip(self.dim_names, self.value_sets)
        )
        return dataclasses.replace(self, value_sets=value_sets)

    def with_tests(self, names: Sequence[str]) -> "Sweep":
        return dataclasses.replace(self, tests=tuple(self.test(name) for name in names))

    def describe(self, configuration: TestConfiguration) -> str:
        named = list(configuration.named_dims())
        swept = dict(named)
        named.extend((name, swept[source]) for name, source in self.derived)
        dims = "; ".join(f"{name}: {value}" for name, value in named)
        return f"Testing {self.title} with {dims}"


def _tests(prefix: str, operator: OperatorKind, float_tol: float, int8_tol: float, fp16_tol: float) -> Tuple[SweepTest, ...]:
    ref = PrecisionMode.REFERENCE
    return (
        SweepTest(f"{prefix}_Float", operator, ref, PrecisionMode.REFERENCE, ToleranceSpec(float_tol)),
        SweepTest(f"{prefix}_Int8", operator, ref, PrecisionMode.QUANTIZED, ToleranceSpec(int8_tol)),
        SweepTest(f"{prefix}_Float16", operator, ref, PrecisionMode.REDUCED_FLOAT, ToleranceSpec(fp16_tol)),
    )


CONV_SWEEP = Sweep(
    name="ConvSweepTest",
    title="Conv",
    operator=OperatorKind.CONVOLUTION,
    dim_names=("size", "depth", "kernel"),
    value_sets=((5, 7, 15), (8, 64), (1, 3)),
    tests=_tests("ConvTest", OperatorKind.CONVOLUTION, 0.0001, 0.045, 0.005),
)

BATCH_MATMUL_SWEEP = Sweep(
    name="BatchMatMulSweepTest",
    title="BatchMatMul",
    operator=OperatorKind.BATCH_MATMUL,
    dim_names=("N", "A", "Z"),
    value_sets=((1, 4, 16, 24), tuple(range(10, 16)), (32, 64, 128, 256)),
    tests=_tests("BatchMatMulTest", OperatorKind.BATCH_MATMUL, 0.0001, 0.06, 0.005),
    derived=(("B", "A"),),
)

FC_SWEEP = Sweep(
    name="FCSweepTest",
    title="FC",
    operator=OperatorKind.FULLY_CONNECTED,
    dim_names=("A", "Z", "B"),
    value_sets=((1, 4, 16, 64), (256, 512, 1024, 2048, 4096), (64, 256, 1024)),
    tests=_tests("FCTest", OperatorKind.FULLY_CONNECTED, 0.0001, 0.065, 0.004),
)

SWEEPS: Tuple[Sweep, ...] = (CONV_SWEEP, BATCH_MATMUL_SWEEP, FC_SWEEP)

_ALIASES: Dict[str, str] = {
    "conv": CONV_SWEEP.name,
    "batch_matmul": BATCH_MATMUL_SWEEP.name,
    "bmm": BATCH_MATMUL_SWEEP.name,
    "fc": FC_SWEEP.name,
    "fully_connected": FC_SWEEP.name,
}


def get_sweep(name: str) -> Sweep:
    target = _ALIASES.get(name.lower(), name)
    for sweep in SWEEPS:
        if sweep.name == target:
            return sweep
    known = ", ".join(sweep.name for sweep in SWEEPS)
    raise KeyError(f"Unknown sweep '{name}' (known: {known})")

