"""
UI Latency Bench - perceived latency measurement for conversational web UIs.

Measures time to first byte, time to first token, time to last byte, render
latency and response size of a chat exchange, under emulated network
conditions, so competing front-ends for the same backend can be compared.

Usage:
    from ui_latency_bench import TrialRunner, load_settings, load_scenarios
    from ui_latency_bench.harness.playwright_harness import launch_browser

    settings = load_settings()
    async with launch_browser(settings) as open_page:
        runner = TrialRunner(settings, open_page)
        await runner.run_all(load_scenarios(settings.targets_path))

Observation strategies (exactly one per run):
    out_of_page: correlates the browser's request/response lifecycle events
    in_page: routes the chat call through an instrumented httpx transport

Result Types:
    MetricRecord: One trial's metrics (-1 = not observed)
    SummaryStatistic: Per-field mean/median over a trial set

Exceptions:
    BenchError: Base exception for all errors
    ConfigurationError: Invalid config or scenario input
    EventSchemaError: Malformed network event payload
    HarnessError: UI harness failures
"""

from __future__ import annotations

# Version - synchronized with pyproject.toml
__version__ = "1.0.0"

from ui_latency_bench.analysis.summarizer import summarize
from ui_latency_bench.benchmarking.results import ArtifactStore, write_results_table
from ui_latency_bench.benchmarking.runner import TrialClassResult, TrialRunner
from ui_latency_bench.config import BenchSettings, load_scenarios, load_settings
from ui_latency_bench.exceptions import (
    BenchError,
    ConfigurationError,
    EventSchemaError,
    HarnessError,
)
from ui_latency_bench.instrumentation import (
    InPageInterceptor,
    InPageObserver,
    OutOfPageObserver,
    TrialContext,
)
from ui_latency_bench.types import (
    METRIC_FIELDS,
    UNOBSERVED,
    FieldSummary,
    MetricRecord,
    MetricSample,
    RequestEvent,
    ResponseEvent,
    Scenario,
    SummaryStatistic,
)

__all__ = [
    "__version__",
    "ArtifactStore",
    "BenchError",
    "BenchSettings",
    "ConfigurationError",
    "EventSchemaError",
    "FieldSummary",
    "HarnessError",
    "InPageInterceptor",
    "InPageObserver",
    "METRIC_FIELDS",
    "MetricRecord",
    "MetricSample",
    "OutOfPageObserver",
    "RequestEvent",
    "ResponseEvent",
    "Scenario",
    "SummaryStatistic",
    "TrialClassResult",
    "TrialContext",
    "TrialRunner",
    "UNOBSERVED",
    "load_scenarios",
    "load_settings",
    "summarize",
    "write_results_table",
]
