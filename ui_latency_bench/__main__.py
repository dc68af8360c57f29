#!/usr/bin/env python3
"""
UI Latency Bench entry point.

Usage:
    python -m ui_latency_bench run [--targets targets.json] [--trials 5]
                                   [--strategy in_page] [--scenario NAME]
    python -m ui_latency_bench report

Output:
    - <output_dir>/<scenario>-<class>.json per scenario and trial class
    - <output_dir>/results.json and results.md aggregated over all artifacts
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime

from ui_latency_bench.benchmarking.results import ArtifactStore, write_results_table
from ui_latency_bench.benchmarking.runner import TrialRunner
from ui_latency_bench.config import BenchSettings, load_scenarios, load_settings
from ui_latency_bench.exceptions import BenchError

logger = logging.getLogger(__name__)

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        return json.dumps(log_data)


def setup_logging(level: str | None = None) -> None:
    """Configure root logging from LOG_LEVEL / LOG_FORMAT (plain or json)."""
    log_level = getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    if os.getenv("LOG_FORMAT", "plain").lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ui_latency_bench",
        description="Measure perceived latency of conversational web UIs",
    )
    parser.add_argument("--config", help="Path to config.yaml (default: config/config.yaml)")
    parser.add_argument("--output-dir", help="Artifact directory (overrides OUTPUT_DIR)")
    parser.add_argument("--log-level", help="Logging level (overrides LOG_LEVEL)")

    # "run" is the default command; keep its options resolvable without it
    parser.set_defaults(targets=None, trials=None, strategy=None, scenario=[], headed=False)

    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Run trials and write artifacts")
    run.add_argument("--targets", help="Scenario file (overrides TARGETS_PATH)")
    run.add_argument("--trials", type=int, help="Measured trials per trial class")
    run.add_argument("--strategy", choices=["out_of_page", "in_page"], help="Observation strategy")
    run.add_argument(
        "--scenario",
        action="append",
        default=[],
        help="Only run the named scenario (repeatable)",
    )
    run.add_argument("--headed", action="store_true", help="Show the browser window")

    subparsers.add_parser("report", help="Rebuild results.json/results.md from artifacts")

    return parser


async def run_benchmark(settings: BenchSettings, only: list[str]) -> int:
    # Deferred: report-only invocations do not need a browser stack
    from ui_latency_bench.harness.playwright_harness import launch_browser

    scenarios = load_scenarios(settings.targets_path)
    if only:
        unknown = set(only) - {s.name for s in scenarios}
        if unknown:
            logger.error(f"Unknown scenario(s): {', '.join(sorted(unknown))}")
            return 2
        scenarios = [s for s in scenarios if s.name in only]

    async with launch_browser(settings) as open_page:
        runner = TrialRunner(settings, open_page)
        results = await runner.run_all(scenarios)

    failed = [f"{r.scenario} {r.trial_class}" for r in results if not r.limits.get("pass", True)]

    logger.info("=" * 80)
    logger.info("BENCHMARK COMPLETE")
    logger.info("=" * 80)
    logger.info(f"Summaries: {len(results)}")
    if failed:
        logger.warning(f"Limit checks failed: {', '.join(failed)}")
    logger.info("=" * 80)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    command = args.command or "run"
    overrides = {"paths.output_dir": args.output_dir}
    if command == "run":
        overrides.update(
            {
                "paths.targets": args.targets,
                "trials": args.trials,
                "strategy": args.strategy,
                "browser.headless": False if args.headed else None,
            }
        )

    try:
        settings = load_settings(args.config, overrides)

        if command == "report":
            md = write_results_table(ArtifactStore(settings.output_dir), settings.trial_classes)
            print(md)
            return 0

        return asyncio.run(run_benchmark(settings, args.scenario))

    except BenchError as e:
        logger.error(f"FATAL: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
