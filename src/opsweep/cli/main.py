"""CLI entry point for opsweep."""
from __future__ import annotations

import logging
import sys
from typing import Dict, List, Optional, Tuple

import click
from colorama import init as colorama_init

from opsweep import __version__, bootstrap
from opsweep.backends import backend_manager
from opsweep.core.gate import default_gate
from opsweep.core.runner import SweepRunner
from opsweep.plan import PlanError, RunOptions, build_sweep_plan, resolve_cases
from opsweep.reporting import JsonReporter, ReportManager, Reporter, TerminalReporter
from opsweep.sweeps import SWEEPS

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class CliState:
    """Holds global CLI state."""

    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"opsweep {__version__}")
    raise click.exceptions.Exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the opsweep version and exit.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Differential numerical sweeps of operator backends against the reference."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    bootstrap()
    ctx.obj = CliState(verbose=verbose)


@cli.command(name="list")
def list_sweeps() -> None:
    """List built-in sweeps, their tests and the backends enabled for each."""

    registered = set(backend_manager.names())
    for sweep in SWEEPS:
        dims = ", ".join(
            f"{name}={list(values)}" for name, values in zip(sweep.dim_names, sweep.value_sets)
        )
        click.echo(f"{sweep.name} ({dims})")
        for test in sweep.tests:
            enabled = sorted(default_gate.backends_for(test.operator, test.cand_mode))
            marked = ", ".join(name if name in registered else f"{name}(unregistered)" for name in enabled)
            click.echo(
                f"  {test.name}: {test.ref_mode.value}->{test.cand_mode.value} "
                f"tol={test.tolerance.max_abs} backends=[{marked}]"
            )


@cli.command()
@click.option("--plan", "plan_path", type=click.Path(exists=True, dir_okay=False), help="YAML sweep plan.")
@click.option("--sweep", "sweeps", multiple=True, help="Sweep name or alias (conv, bmm, fc). Repeatable.")
@click.option("--test", "tests", multiple=True, help="Sweep test name, e.g. FCTest_Int8. Repeatable.")
@click.option("--backend", "backends", multiple=True, help="Backend identifier. Repeatable.")
@click.option("--filter", "filters", multiple=True, help="fnmatch pattern on case identifiers. Repeatable.")
@click.option(
    "--values",
    "value_specs",
    multiple=True,
    help="Override one dimension's values: SWEEP.DIM=v1,v2 (e.g. fc.Z=256,512). Repeatable.",
)
@click.option("--seed", type=int, help="Master seed for input initialization.")
@click.option("--workers", type=click.IntRange(min=1), help="Evaluate cases on this many threads.")
@click.option("--fail-fast", is_flag=True, help="Stop at the first failure or error.")
@click.option("--list", "list_only", is_flag=True, help="List matched cases without running.")
@click.option(
    "--report",
    "report_format",
    type=click.Choice(["terminal", "json"]),
    help="Report format (terminal by default).",
)
@click.option("--report-path", type=str, help="When --report json, write to this path.")
@click.option("--show-skipped", is_flag=True, help="Print skipped cases in terminal output.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def run(
    state: CliState,
    plan_path: Optional[str],
    sweeps: Tuple[str, ...],
    tests: Tuple[str, ...],
    backends: Tuple[str, ...],
    filters: Tuple[str, ...],
    value_specs: Tuple[str, ...],
    seed: Optional[int],
    workers: Optional[int],
    fail_fast: bool,
    list_only: bool,
    report_format: Optional[str],
    report_path: Optional[str],
    show_skipped: bool,
    no_color: bool,
) -> None:
    """Run sweep tests and compare every backend against the reference."""

    options = RunOptions(
        plan_path=plan_path,
        sweeps=sweeps,
        tests=tests,
        backends=backends,
        filters=filters,
        value_overrides=_parse_value_specs(value_specs),
        seed=seed,
        workers=workers,
        fail_fast=fail_fast,
        report_format=report_format,
        report_path=report_path,
        color=False if no_color else None,
    )
    try:
        plan = build_sweep_plan(options)
    except PlanError as exc:
        raise click.ClickException(str(exc)) from exc
    cases = resolve_cases(plan)
    if list_only:
        for case in cases:
            click.echo(case.identifier())
        return
    if not cases:
        click.echo("No cases matched the provided filters.")
        raise click.exceptions.Exit(1)

    settings = plan.settings
    if settings.color:
        colorama_init()
    terminal = TerminalReporter(use_color=settings.color, show_skipped=show_skipped or state.verbose)
    reporters: List[Reporter] = [terminal]
    if settings.report_format == "json":
        reporters = [JsonReporter(settings.report_path)]
    manager = ReportManager(reporters)
    runner = SweepRunner(seed=settings.seed, workers=settings.workers, fail_fast=settings.fail_fast)
    manager.start(plan, len(cases))
    try:
        results = runner.run(cases, on_result=manager.handle_result)
    except Exception as exc:  # pragma: no cover - CLI error translation
        raise click.ClickException(str(exc)) from exc
    manager.complete(results)
    failures = sum(1 for result in results if result.counts_as_failure)
    raise click.exceptions.Exit(0 if failures == 0 else 1)


def _parse_value_specs(specs: Tuple[str, ...]) -> Dict[str, Dict[str, List[int]]]:
    overrides: Dict[str, Dict[str, List[int]]] = {}
    for spec in specs:
        target, sep, raw = spec.partition("=")
        sweep, dot, dim = target.partition(".")
        if not sep or not dot or not sweep or not dim:
            raise click.BadParameter(f"Expected SWEEP.DIM=v1,v2 but got '{spec}'", param_hint="--values")
        try:
            values = [int(part) for part in raw.split(",") if part.strip()]
        except ValueError as exc:
            raise click.BadParameter(f"Non-integer value in '{spec}'", param_hint="--values") from exc
        if not values:
            raise click.BadParameter(f"No values given in '{spec}'", param_hint="--values")
        if any(value < 1 for value in values):
            raise click.BadParameter(f"Dimension values must be >= 1 in '{spec}'", param_hint="--values")
        overrides.setdefault(sweep.strip(), {})[dim.strip()] = values
    return overrides


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="opsweep", standalone_mode=True)
    except click.ClickException as err:  # pragma: no cover - click handles display
        err.show()
        return err.exit_code
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
