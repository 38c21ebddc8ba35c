"""Build one graph twice and run it on the reference and candidate backends."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from opsweep.backends import REFERENCE_BACKEND, BackendDriver, BackendManager, backend_manager
from opsweep.graph.builders import GraphSpec, operator_of
from opsweep.graph.precision import QuantizationProfile, convert_graph

from .comparator import ComparisonOutcome, compare
from .errors import BackendExecutionError, OpsweepError, ToleranceExceeded, UnsupportedConfiguration
from .gate import BackendGate, default_gate
from .models import OperatorKind, PrecisionMode, TestConfiguration
from .tensor import Tensor

logger = logging.getLogger(__name__)


@dataclass
class DualRunResult:
    """Both output tensors of one configuration plus the comparison outcome."""

    applicable: bool
    reference: Optional[Tensor] = None
    candidate: Optional[Tensor] = None
    outcome: Optional[ComparisonOutcome] = None

    @property
    def passed(self) -> bool:
        return self.applicable and self.outcome is not None and self.outcome.passed

    def check(self, configuration: Optional[TestConfiguration] = None) -> None:
        """Raise :class:`ToleranceExceeded` if an applicable run did not pass."""

        if not self.applicable or self.outcome is None or self.outcome.passed:
            return
        raise ToleranceExceeded(
            configuration,
            self.outcome.max_abs_error,
            self.outcome.tolerance,
            self.outcome.max_error_index,
        )


class DualExecutor:
    """Runs a builder on the reference executor and on a named backend."""

    def __init__(
        self,
        *,
        manager: Optional[BackendManager] = None,
        gate: Optional[BackendGate] = None,
        reference_backend: str = REFERENCE_BACKEND,
    ) -> None:
        self._manager = manager or backend_manager
        self._gate = gate or default_gate
        self._reference_backend = reference_backend

    def run(
        self,
        builder: Callable[..., GraphSpec],
        dims: Sequence[int],
        backend_id: str,
        ref_mode: PrecisionMode,
        cand_mode: PrecisionMode,
        tolerance: float,
        *,
        seed: int = 0,
        operator: Optional[OperatorKind] = None,
    ) -> DualRunResult:
        operator = operator or operator_of(builder)
        if not self._gate.is_applicable(backend_id, operator, cand_mode):
            logger.debug("Skipping %s on %s at %s: not enabled", operator.value, backend_id, cand_mode.value)
            return DualRunResult(applicable=False)

        reference = self._driver(self._reference_backend, operator, ref_mode)
        candidate = self._driver(backend_id, operator, cand_mode)

        profile = None
        if PrecisionMode.QUANTIZED in (ref_mode, cand_mode):
            profile = self._profile(builder, dims, seed, reference)

        ref_tensor = self._execute(reference, builder, dims, seed, ref_mode, profile)
        cand_tensor = self._execute(candidate, builder, dims, seed, cand_mode, profile)
        outcome = compare(ref_tensor, cand_tensor, tolerance)
        logger.debug(
            "%s%s on %s: max_abs=%.6g tol=%.6g",
            operator.value,
            tuple(dims),
            backend_id,
            outcome.max_abs_error,
            tolerance,
        )
        return DualRunResult(applicable=True, reference=ref_tensor, candidate=cand_tensor, outcome=outcome)

    def _driver(self, backend_id: str, operator: OperatorKind, mode: PrecisionMode) -> BackendDriver:
        if backend_id not in self._manager:
            raise UnsupportedConfiguration(f"backend '{backend_id}' is not registered")
        driver = self._manager.get_driver(backend_id)
        if not driver.supports(operator, mode):
            raise UnsupportedConfiguration(
                f"backend '{backend_id}' cannot run {operator.value} at {mode.value}"
            )
        return driver

    def _profile(
        self, builder: Callable[..., GraphSpec], dims: Sequence[int], seed: int, driver: BackendDriver
    ) -> QuantizationProfile:
        graph = builder(*dims, rng=np.random.default_rng(seed))
        self._run_graph(driver, graph)
        return QuantizationProfile.collect(graph)

    def _execute(
        self,
        driver: BackendDriver,
        builder: Callable[..., GraphSpec],
        dims: Sequence[int],
        seed: int,
        mode: PrecisionMode,
        profile: Optional[QuantizationProfile],
    ) -> Tensor:
        # Fresh graph and generator per execution; nothing is shared between runs.
        graph = convert_graph(builder(*dims, rng=np.random.default_rng(seed)), mode, profile)
        self._run_graph(driver, graph)
        return graph.output_tensor()

    @staticmethod
    def _run_graph(driver: BackendDriver, graph: GraphSpec) -> None:
        try:
            driver.execute(graph.function, graph.bindings)
        except OpsweepError:
            raise
        except Exception as exc:
            raise BackendExecutionError(driver.name, f"{type(exc).__name__}: {exc}") from exc
