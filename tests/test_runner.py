from __future__ import annotations

import pytest

from opsweep.core.runner import SweepRunner, plan_cases
from opsweep.sweeps import BATCH_MATMUL_SWEEP, CONV_SWEEP, FC_SWEEP

from .helpers import BrokenBackend, ZeroBackend, make_executor

SMALL_FC = FC_SWEEP.with_values({"A": [1], "Z": [256], "B": [64]})


def _cases(test_names, backends, sweep=SMALL_FC):
    return plan_cases([sweep.with_tests(test_names)], backends)


def test_runner_passes_and_skips_by_gate() -> None:
    cases = _cases(["FCTest_Float"], ["Interpreter", "CPU"])
    results = SweepRunner(seed=0).run(cases)
    assert [(r.case.configuration.backend_id, r.status) for r in results] == [
        ("Interpreter", "skipped"),
        ("CPU", "passed"),
    ]
    assert results[1].outcome is not None
    assert not any(r.counts_as_failure for r in results)


def test_unregistered_backend_is_skipped_not_failed() -> None:
    results = SweepRunner().run(_cases(["FCTest_Int8"], ["OpenCL"]))
    assert [r.status for r in results] == ["skipped"]
    assert "not registered" in results[0].error


def test_backend_exception_is_isolated() -> None:
    runner = SweepRunner(executor=make_executor(BrokenBackend()))
    results = runner.run(_cases(["FCTest_Float"], ["Broken", "CPU"]))
    assert [r.status for r in results] == ["error", "passed"]
    assert "boom" in results[0].error
    assert results[0].counts_as_failure


def test_fail_fast_stops_after_first_failure() -> None:
    runner = SweepRunner(fail_fast=True, executor=make_executor(BrokenBackend()))
    results = runner.run(_cases(["FCTest_Float"], ["Broken", "CPU"]))
    assert [r.status for r in results] == ["error"]


def test_case_seed_independent_of_backend_and_order() -> None:
    cases = _cases(["FCTest_Int8"], ["Interpreter", "CPU"])
    assert cases[0].configuration.dims == cases[1].configuration.dims
    assert cases[0].seed(0) == cases[1].seed(0)
    assert cases[0].seed(0) != cases[0].seed(1)
    reversed_cases = _cases(["FCTest_Int8"], ["CPU", "Interpreter"])
    assert reversed_cases[0].seed(0) == cases[1].seed(0)


def test_rerun_is_deterministic() -> None:
    cases = _cases(["FCTest_Int8"], ["Interpreter", "CPU"])
    first = SweepRunner(seed=5).run(cases)
    second = SweepRunner(seed=5).run(cases)
    assert [r.outcome.max_abs_error for r in first] == [r.outcome.max_abs_error for r in second]
    assert [r.seed for r in first] == [r.seed for r in second]


def test_parallel_matches_sequential() -> None:
    sweep = BATCH_MATMUL_SWEEP.with_values({"N": [1, 4], "A": [10], "Z": [32]})
    cases = plan_cases([sweep.with_tests(["BatchMatMulTest_Float", "BatchMatMulTest_Int8"])], ["Interpreter", "CPU"])
    sequential = SweepRunner(seed=2).run(cases)
    seen = []
    parallel = SweepRunner(seed=2, workers=4).run(cases, on_result=lambda r, i, t: seen.append((i, t)))
    assert [r.case.identifier() for r in parallel] == [r.case.identifier() for r in sequential]
    assert [r.status for r in parallel] == [r.status for r in sequential]
    assert [r.outcome.max_abs_error if r.outcome else None for r in parallel] == [
        r.outcome.max_abs_error if r.outcome else None for r in sequential
    ]
    assert seen == [(i, len(cases)) for i in range(1, len(cases) + 1)]


def test_identifier_and_worker_validation() -> None:
    (case,) = _cases(["FCTest_Float"], ["CPU"])
    assert case.identifier() == "FCTest_Float/CPU/A=1,Z=256,B=64"
    with pytest.raises(ValueError):
        SweepRunner(workers=0)


@pytest.mark.parametrize("workers", [1, 2])
def test_invalid_shape_is_an_error_for_that_case_only(workers) -> None:
    sweep = CONV_SWEEP.with_values({"size": [2, 7], "depth": [8], "kernel": [3]})
    results = SweepRunner(workers=workers).run(_cases(["ConvTest_Float"], ["CPU"], sweep=sweep))
    assert [r.status for r in results] == ["error", "passed"]
    assert results[0].case.configuration.dims == (2, 8, 3)
    assert results[0].error.startswith("ValueError: kernel 3 does not fit")


def test_tolerance_failure_carries_configuration() -> None:
    runner = SweepRunner(executor=make_executor(ZeroBackend()))
    results = runner.run(_cases(["FCTest_Float", "FCTest_Int8"], ["Zero"]))
    assert [r.status for r in results] == ["failed", "failed"]
    for result in results:
        assert result.outcome is not None and not result.outcome.passed
        assert "Zero/A=1,Z=256,B=64" in result.error
        assert "exceeds tolerance" in result.error
