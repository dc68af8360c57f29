"""
Unit tests for the command line entry point.
"""

import asyncio
import json
import logging

import pytest
import yaml

from ui_latency_bench import __main__ as cli
from ui_latency_bench.benchmarking.results import ArtifactStore
from ui_latency_bench.types import FieldSummary, SummaryStatistic


@pytest.fixture(autouse=True)
def keep_root_logging(monkeypatch):
    """Restore root handlers replaced by setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    for var in ("ENVIRONMENT", "BENCH_CONFIG", "TARGETS_PATH", "OUTPUT_DIR", "BENCH_TRIALS", "BENCH_STRATEGY"):
        monkeypatch.delenv(var, raising=False)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path, config_dict):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"base": config_dict}))
    return path


@pytest.mark.P1
class TestParser:
    def test_no_command_defaults(self):
        args = cli.build_parser().parse_args([])

        assert args.command is None
        assert args.scenario == []
        assert args.headed is False

    def test_run_options(self):
        args = cli.build_parser().parse_args(
            ["run", "--trials", "5", "--strategy", "in_page", "--scenario", "a", "--scenario", "b"]
        )

        assert args.trials == 5
        assert args.strategy == "in_page"
        assert args.scenario == ["a", "b"]

    def test_invalid_strategy_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["run", "--strategy", "both"])


@pytest.mark.P1
class TestMain:
    def test_report_prints_table(self, config_file, settings, capsys):
        ArtifactStore(settings.output_dir).write(
            "next-chat",
            "P1",
            SummaryStatistic(fields={"ttfb_ms": FieldSummary(120, 118)}),
        )

        code = cli.main(["--config", str(config_file), "report"])

        assert code == 0
        assert "| next-chat | 120 |" in capsys.readouterr().out
        assert (settings.output_dir / "results.md").exists()

    def test_output_dir_override(self, config_file, tmp_path):
        out = tmp_path / "elsewhere"

        assert cli.main(["--config", str(config_file), "--output-dir", str(out), "report"]) == 0
        assert (out / "results.json").exists()

    def test_configuration_error_exits_1(self, tmp_path):
        assert cli.main(["--config", str(tmp_path / "missing.yaml"), "report"]) == 1

    def test_unknown_scenario_exits_2(self, settings, tmp_path):
        settings.targets_path.write_text(
            json.dumps(
                [
                    {
                        "name": "next-chat",
                        "baseUrl": "http://ui.test/",
                        "fetchRegex": "/api/chat",
                        "selectors": {"input": "#i", "send": "#s", "assistant": ".a"},
                    }
                ]
            )
        )

        assert asyncio.run(cli.run_benchmark(settings, ["nope"])) == 2


@pytest.mark.P2
class TestLogging:
    def test_json_formatter(self):
        record = logging.LogRecord("ui_latency_bench.runner", logging.INFO, __file__, 42, "Run %d", (1,), None)

        data = json.loads(cli.JSONFormatter().format(record))

        assert data["message"] == "Run 1"
        assert data["level"] == "INFO"
        assert data["logger"] == "ui_latency_bench.runner"

    def test_setup_logging_json(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")

        cli.setup_logging("debug")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, cli.JSONFormatter)
