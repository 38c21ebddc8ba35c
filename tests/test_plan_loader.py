from __future__ import annotations

import pytest

from opsweep.backends import BackendManager, CpuBackendDriver
from opsweep.plan import PlanError, RunOptions, build_sweep_plan, resolve_cases

FC_SMALL = {"fc": {"A": [1], "Z": [256], "B": [64]}}


def test_build_plan_from_cli_options() -> None:
    options = RunOptions(
        sweeps=("fc",),
        tests=("FCTest_Float",),
        backends=("CPU",),
        value_overrides=FC_SMALL,
        seed=3,
    )
    plan = build_sweep_plan(options)
    assert [sweep.name for sweep in plan.sweeps] == ["FCSweepTest"]
    assert plan.settings.seed == 3
    assert plan.settings.workers == 1
    cases = resolve_cases(plan)
    assert [case.identifier() for case in cases] == ["FCTest_Float/CPU/A=1,Z=256,B=64"]


def test_backends_default_to_registered_manager() -> None:
    manager = BackendManager()
    manager.register(CpuBackendDriver())
    plan = build_sweep_plan(RunOptions(sweeps=("conv",)), manager=manager)
    assert plan.settings.backends == ("CPU",)
    assert [test.name for test in plan.sweeps[0].tests] == [
        "ConvTest_Float",
        "ConvTest_Int8",
        "ConvTest_Float16",
    ]


def test_yaml_plan_file(tmp_path) -> None:
    plan_path = tmp_path / "plan.yaml"
    plan_path.write_text(
        """
seed: 7
workers: 2
backends: [CPU, Interpreter]
report:
  format: json
  path: out/report.json
sweeps:
  bmm:
    values:
      N: [1]
      A: [10]
      Z: [32]
    tests: [BatchMatMulTest_Float]
""",
        encoding="utf-8",
    )
    plan = build_sweep_plan(RunOptions(plan_path=str(plan_path)))
    assert plan.settings.seed == 7
    assert plan.settings.workers == 2
    assert plan.settings.report_format == "json"
    assert plan.settings.report_path == "out/report.json"
    cases = resolve_cases(plan)
    assert [case.configuration.backend_id for case in cases] == ["CPU", "Interpreter"]

    overridden = build_sweep_plan(RunOptions(plan_path=str(plan_path), seed=1, report_format="terminal"))
    assert overridden.settings.seed == 1
    assert overridden.settings.report_format == "terminal"


def test_schema_errors_are_reported(tmp_path) -> None:
    plan_path = tmp_path / "bad.yaml"
    plan_path.write_text("workers: 0\nunknown_key: 1\n", encoding="utf-8")
    with pytest.raises(PlanError) as excinfo:
        build_sweep_plan(RunOptions(plan_path=str(plan_path)))
    message = str(excinfo.value)
    assert "workers" in message
    assert "unknown_key" in message


def test_top_level_must_be_mapping(tmp_path) -> None:
    plan_path = tmp_path / "list.yaml"
    plan_path.write_text("- fc\n", encoding="utf-8")
    with pytest.raises(PlanError):
        build_sweep_plan(RunOptions(plan_path=str(plan_path)))


@pytest.mark.parametrize(
    "options",
    [
        RunOptions(sweeps=("pooling",)),
        RunOptions(sweeps=("fc",), tests=("ConvTest_Float",)),
        RunOptions(sweeps=("fc",), value_overrides={"fc": {"W": [1]}}),
    ],
)
def test_unknown_names_raise_plan_error(options) -> None:
    with pytest.raises(PlanError):
        build_sweep_plan(options)


def test_filters_match_case_identifiers() -> None:
    options = RunOptions(
        sweeps=("fc",),
        tests=("FCTest_Int8",),
        backends=("Interpreter", "CPU"),
        value_overrides=FC_SMALL,
        filters=("*/CPU/*",),
    )
    cases = resolve_cases(build_sweep_plan(options))
    assert [case.configuration.backend_id for case in cases] == ["CPU"]


def test_yaml_syntax_error_is_plan_error(tmp_path) -> None:
    plan_path = tmp_path / "broken.yaml"
    plan_path.write_text("seed: [1, 2\n", encoding="utf-8")
    with pytest.raises(PlanError):
        build_sweep_plan(RunOptions(plan_path=str(plan_path)))
