"""Command-line entry point.

Usage:
    sitestress capacity --config stress.yaml
    sitestress capacity --url https://example.com --path /about --min-users 10 --max-users 200
    sitestress run --url https://example.com --users 100 --shape cross_product --retries 2
    python -m sitestress run --backend browser --users 20
"""

import argparse
import asyncio
import os
import platform
import sys

import structlog

from sitestress.config import StressConfig, apply_fixed_run_defaults, settings
from sitestress.domain.models import LoadShape
from sitestress.engine.capacity import CapacityDriver, CapacityPlan
from sitestress.engine.scheduler import WorkScheduler
from sitestress.engine.step import StepConfig, StepController
from sitestress.exceptions import ConfigError
from sitestress.probes import probe_factory
from sitestress.reporting import (
    DiagnosticsRecorder,
    ReportWriter,
    log_capacity_summary,
    log_step_summary,
)
from sitestress.shared.logging import setup_logging

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_THRESHOLDS_FAILED = 1
EXIT_CONFIG_ERROR = 2


def system_info() -> dict[str, object]:
    info: dict[str, object] = {
        "os": f"{platform.system()} {platform.release()}",
        "cpus": os.cpu_count(),
        "python": platform.python_version(),
    }
    try:
        total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
        info["memory_gb"] = round(total / (1024**3))
    except (AttributeError, ValueError, OSError):
        info["memory_gb"] = None
    return info


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitestress",
        description="Simulated-user load testing and capacity discovery for websites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file.")
    parser.add_argument(
        "--url",
        action="append",
        default=None,
        help="Base URL to test (repeatable). Replaces the configured domains.",
    )
    parser.add_argument(
        "--path",
        action="append",
        default=None,
        help="Subpath tested under every --url (repeatable).",
    )
    parser.add_argument(
        "--backend",
        choices=["http", "browser"],
        default=None,
        help="Probe backend (default: http, or the config file value).",
    )
    parser.add_argument("--timeout-ms", type=int, default=None, help="Per-visit timeout.")
    parser.add_argument("--retries", type=int, default=None, help="Retries per visit.")
    parser.add_argument("--output-dir", type=str, default=None, help="Report directory.")
    parser.add_argument("--log-level", type=str, default=settings.log_level)
    parser.add_argument("--json-logs", action="store_true", default=settings.json_logs)

    sub = parser.add_subparsers(dest="command", required=True)

    capacity = sub.add_parser("capacity", help="Escalate users until thresholds fail.")
    capacity.add_argument("--min-users", type=int, default=None)
    capacity.add_argument("--max-users", type=int, default=None)
    capacity.add_argument("--step-size", type=int, default=None)

    run = sub.add_parser("run", help="Run a single fixed-load step.")
    run.add_argument("--users", type=int, default=None)
    run.add_argument("--shape", choices=[s.value for s in LoadShape], default=None)

    return parser


def load_config(args: argparse.Namespace) -> StressConfig:
    config = StressConfig.from_yaml(args.config) if args.config else StressConfig.from_env()
    if args.command == "run":
        apply_fixed_run_defaults(config)

    if args.url:
        config.domains = {url: list(args.path or []) for url in args.url}
    if args.backend:
        config.probe.backend = args.backend
    if args.timeout_ms is not None:
        config.probe.timeout_ms = args.timeout_ms
    if args.retries is not None:
        config.probe.max_retries = args.retries
    if args.output_dir:
        config.output_dir = args.output_dir

    if args.command == "capacity":
        if args.min_users is not None:
            config.load.min_users = args.min_users
        if args.max_users is not None:
            config.load.max_users = args.max_users
        if args.step_size is not None:
            config.load.step_size = args.step_size
    else:
        if args.users is not None:
            config.load.users = args.users
        if args.shape:
            config.load.shape = LoadShape(args.shape)

    config.validate()
    return config


def build_probe(config: StressConfig):
    if config.probe.backend == "browser":
        return probe_factory("browser", headless=config.probe.headless)
    return probe_factory(config.probe.backend)


async def run_capacity(config: StressConfig) -> int:
    writer = ReportWriter(config.output_dir)
    recorder = DiagnosticsRecorder(os.path.join(config.output_dir, "logs"))

    def _on_step(result) -> None:
        log_step_summary(result)
        writer.write_step(result)

    async with build_probe(config) as probe:
        controller = StepController.from_config(
            config,
            probe,
            scheduler=WorkScheduler(on_result=recorder),
            on_step_complete=_on_step,
        )
        plan = CapacityPlan(
            min_users=config.load.min_users,
            max_users=config.load.max_users,
            step_size=config.load.step_size,
        )
        capacity = await CapacityDriver(controller, plan, config.all_urls()).run()

    writer.write_capacity(capacity)
    log_capacity_summary(capacity)
    return EXIT_OK if capacity.max_supported_users > 0 else EXIT_THRESHOLDS_FAILED


async def run_fixed(config: StressConfig) -> int:
    writer = ReportWriter(config.output_dir)
    recorder = DiagnosticsRecorder(os.path.join(config.output_dir, "logs"))

    async with build_probe(config) as probe:
        controller = StepController.from_config(
            config, probe, scheduler=WorkScheduler(on_result=recorder)
        )
        result = await controller.execute_step(StepConfig(config.load.users, config.all_urls()))

    log_step_summary(result)
    writer.write_run(result)
    return EXIT_OK if result.passed else EXIT_THRESHOLDS_FAILED


async def async_main(args: argparse.Namespace) -> int:
    try:
        config = load_config(args)
    except ConfigError as exc:
        logger.error("invalid_configuration", error=str(exc))
        return EXIT_CONFIG_ERROR

    logger.info("sitestress_starting", command=args.command, **system_info())
    logger.info("targets", urls=config.all_urls(), backend=config.probe.backend)

    if args.command == "capacity":
        return await run_capacity(config)
    return await run_fixed(config)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, json_logs=args.json_logs)
    sys.exit(asyncio.run(async_main(args)))


if __name__ == "__main__":
    main()
