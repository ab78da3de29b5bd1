from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from .catalog import load_registry
from .config import ProvisionConfig, load_config
from .errors import CatalogError, ConfigError, DuplicateStepName, LoggingUnavailable
from .executor import StepExecutor
from .lib.features import DismFeatures
from .lib.pkg import default_package_managers
from .lib.regedit import RegCommand
from .logging_utils import LogLevel, LogSink, configure_logging
from .registry import StepContext, StepRegistry, step_filter
from .report import OverallStatus, RunReport, render_summary
from .report_store import save_report

logger = logging.getLogger(__name__)

EXIT_STARTUP_ERROR = 2
EXIT_INTERRUPTED = 130

_SUMMARY_LEVELS = {
    OverallStatus.SUCCESS: LogLevel.SUCCESS,
    OverallStatus.SUCCESS_WITH_WARNINGS: LogLevel.WARNING,
    OverallStatus.FAILED: LogLevel.ERROR,
}


def default_context(sink: LogSink) -> StepContext:
    return StepContext(
        sink=sink,
        package_managers=default_package_managers(),
        features=DismFeatures(),
        registry=RegCommand(),
    )


def select_steps(config: ProvisionConfig, registry: StepRegistry):
    return registry.select(step_filter(skip=config.skip, only=config.only))


def run(
    config: ProvisionConfig,
    *,
    registry: Optional[StepRegistry] = None,
    context: Optional[StepContext] = None,
) -> RunReport:
    """Provision according to config and return the finalized report.

    LoggingUnavailable, DuplicateStepName and CatalogError propagate: they
    happen before any step runs.
    """

    sink = configure_logging(config.log_paths, verbose=config.verbose)
    sink.info(f"Log file: {sink.active_path}")

    if registry is None:
        registry = load_registry(config.catalog)
    steps = select_steps(config, registry)

    excluded = [n for n in registry.names() if n not in {s.name for s in steps}]
    if excluded:
        sink.info(f"Not selected: {', '.join(excluded)}")

    if context is None:
        context = default_context(sink)
    else:
        context.sink = sink

    report = StepExecutor(sink, config.policy()).run(steps, context)

    for line in render_summary(report):
        sink.log(line, LogLevel.INFO)
    sink.log(f"Overall status: {report.overall_status.value}", _SUMMARY_LEVELS[report.overall_status])
    if sink.write_failed:
        sink.warning(f"Log file {sink.active_path} is incomplete (write failures during run)")

    if config.report is not None:
        try:
            save_report(config.report, report)
        except OSError as e:
            sink.warning(f"Could not write run report to {config.report}: {e}")

    return report


def list_steps(config: ProvisionConfig, out=None) -> int:
    out = out or sys.stdout
    registry = load_registry(config.catalog)
    selected = {s.name for s in select_steps(config, registry)}
    for step in registry:
        mark = "*" if step.name in selected else " "
        req = "required" if step.required else "optional"
        tags = ",".join(sorted(step.tags)) or "-"
        out.write(f"{mark} {step.name:<28} {req:<8} [{tags}] {step.description}\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="workstation-provisioner")
    p.add_argument("--config", default=None, help="YAML config file")
    p.add_argument("--catalog", default=None, help="YAML step catalog (defaults to the bundled workstation catalog)")
    p.add_argument(
        "--log",
        action="append",
        default=None,
        dest="log_paths",
        help="Log file candidate; repeat to add fallbacks (tried in order)",
    )
    p.add_argument("--skip", action="append", default=None, help="Skip a step name or tag (repeatable)")
    p.add_argument("--only", action="append", default=None, help="Run only these step names or tags (repeatable)")
    p.add_argument(
        "--best-effort",
        action="store_true",
        default=None,
        help="Keep going after a required step fails",
    )
    p.add_argument("--force", action="store_true", default=None, help="Run actions even if already satisfied")
    p.add_argument("--dry-run", action="store_true", default=None, help="Check preconditions only")
    p.add_argument("--retries", type=int, default=None, help="Extra attempts for a failing action")
    p.add_argument("--retry-delay", type=float, default=None, help="Seconds between attempts")
    p.add_argument("--report", default=None, help="Write the run report (json|yaml)")
    p.add_argument("--list-steps", action="store_true", help="List catalog steps and exit")
    p.add_argument("-v", "--verbose", action="store_true", default=None, help="Include debug output")
    return p


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    skip: Optional[List[str]] = None
    if args.skip:
        skip = [s.strip() for item in args.skip for s in item.split(",") if s.strip()]
    only: Optional[List[str]] = None
    if args.only:
        only = [s.strip() for item in args.only for s in item.split(",") if s.strip()]
    return {
        "catalog": args.catalog,
        "log_paths": args.log_paths,
        "skip": skip,
        "only": only,
        "best_effort": args.best_effort,
        "force": args.force,
        "dry_run": args.dry_run,
        "retries": args.retries,
        "retry_delay": args.retry_delay,
        "report": args.report,
        "verbose": args.verbose,
    }


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    try:
        config = load_config(args.config, overrides=_overrides(args))
        if args.list_steps:
            return list_steps(config)
        report = run(config)
    except (LoggingUnavailable, DuplicateStepName, CatalogError, ConfigError) as e:
        sys.stderr.write(f"ERROR: {e}\n")
        return EXIT_STARTUP_ERROR
    except KeyboardInterrupt:
        sys.stderr.write("Interrupted\n")
        return EXIT_INTERRUPTED

    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
