"""Sweep runner evaluating every configuration independently."""
from __future__ import annotations

import logging
import time
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from opsweep.sweeps import Sweep, SweepTest

from .errors import BackendExecutionError, ShapeMismatch, ToleranceExceeded, UnsupportedConfiguration
from .executor import DualExecutor
from .models import TestConfiguration
from .results import CaseResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepCase:
    """One precision test bound to one configuration."""

    __test__ = False

    sweep: Sweep
    test: SweepTest
    configuration: TestConfiguration

    def identifier(self) -> str:
        return f"{self.test.name}/{self.configuration.label()}"

    def seed(self, master_seed: int) -> int:
        # Independent of backend and enumeration order, so every backend sees
        # the same inputs for the same dims.
        key = f"{self.sweep.name}/{','.join(str(d) for d in self.configuration.dims)}"
        sequence = np.random.SeedSequence([master_seed, zlib.crc32(key.encode("utf-8"))])
        return int(sequence.generate_state(1)[0])


def plan_cases(sweeps: Iterable[Sweep], backend_ids: Sequence[str]) -> List[SweepCase]:
    """Expand every test of every sweep over its configuration space."""

    cases: List[SweepCase] = []
    for sweep in sweeps:
        configurations = sweep.configurations(backend_ids)
        for test in sweep.tests:
            cases.extend(SweepCase(sweep, test, configuration) for configuration in configurations)
    return cases


class SweepRunner:
    """Executes sweep cases; one case's failure never stops the others."""

    def __init__(
        self,
        *,
        seed: int = 0,
        workers: int = 1,
        fail_fast: bool = False,
        executor: Optional[DualExecutor] = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._seed = seed
        self._workers = workers
        self._fail_fast = fail_fast
        self._executor = executor or DualExecutor()

    def run(
        self,
        cases: Sequence[SweepCase],
        *,
        on_result: Optional[Callable[[CaseResult, int, int], None]] = None,
    ) -> List[CaseResult]:
        if self._workers == 1:
            return self._run_sequential(cases, on_result)
        return self._run_parallel(cases, on_result)

    def _run_sequential(self, cases, on_result) -> List[CaseResult]:
        results: List[CaseResult] = []
        total = len(cases)
        for index, case in enumerate(cases, start=1):
            result = self.execute_case(case)
            results.append(result)
            if on_result:
                on_result(result, index, total)
            if self._fail_fast and result.counts_as_failure:
                break
        return results

    def _run_parallel(self, cases, on_result) -> List[CaseResult]:
        results: List[CaseResult] = []
        total = len(cases)
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            futures = [pool.submit(self.execute_case, case) for case in cases]
            for index, future in enumerate(futures, start=1):
                result = future.result()
                results.append(result)
                if on_result:
                    on_result(result, index, total)
                if self._fail_fast and result.counts_as_failure:
                    for pending in futures[index:]:
                        pending.cancel()
                    break
        return results

    def execute_case(self, case: SweepCase) -> CaseResult:
        seed = case.seed(self._seed)
        configuration = case.configuration
        test = case.test
        start = time.perf_counter()
        try:
            logger.info(case.sweep.describe(configuration))
            run = self._executor.run(
                case.sweep.builder,
                configuration.dims,
                configuration.backend_id,
                test.ref_mode,
                test.cand_mode,
                test.tolerance.max_abs,
                seed=seed,
                operator=test.operator,
            )
        except UnsupportedConfiguration as exc:
            return CaseResult(case, "skipped", time.perf_counter() - start, error=str(exc), seed=seed)
        except (ShapeMismatch, BackendExecutionError) as exc:
            logger.error("%s: %s", case.identifier(), exc)
            return CaseResult(case, "error", time.perf_counter() - start, error=str(exc), seed=seed)
        except Exception as exc:
            # Builder or conversion failure; confined to this case.
            logger.exception("%s: unexpected failure", case.identifier())
            error = f"{type(exc).__name__}: {exc}"
            return CaseResult(case, "error", time.perf_counter() - start, error=error, seed=seed)
        duration = time.perf_counter() - start
        if not run.applicable:
            return CaseResult(case, "skipped", duration, error="backend not enabled for this test", seed=seed)
        try:
            run.check(configuration)
        except ToleranceExceeded as exc:
            logger.warning("%s", exc)
            return CaseResult(case, "failed", duration, outcome=run.outcome, error=str(exc), seed=seed)
        return CaseResult(case, "passed", duration, outcome=run.outcome, seed=seed)

