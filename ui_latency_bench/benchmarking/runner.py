"""
Trial orchestration.

For each scenario and trial class, on a fresh page:

1. Load the scenario's base URL and run its setup clicks
2. Run one warmup trial (primes connections and caches; record discarded)
3. Run N measured trials, each after a reload, with a fresh TrialContext
4. Summarize the TrialSet, log limit checks, persist the summary

Every trial uses the single observer built for the configured strategy.
A failing scenario is logged and skipped; the run continues with the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, Callable, Sequence

from ui_latency_bench.analysis.limits import check_limits
from ui_latency_bench.analysis.summarizer import summarize
from ui_latency_bench.benchmarking.results import ArtifactStore, write_results_table
from ui_latency_bench.config import BenchSettings, TrialClass
from ui_latency_bench.harness.base import UIHarness
from ui_latency_bench.instrumentation.context import TrialContext
from ui_latency_bench.instrumentation.observer import Observer, create_observer
from ui_latency_bench.types import MetricRecord, Scenario, SummaryStatistic

logger = logging.getLogger(__name__)

HarnessFactory = Callable[[], AsyncContextManager[UIHarness]]

# Pause after each setup click
SETUP_CLICK_PAUSE_MS = 500


@dataclass
class TrialClassResult:
    """Outcome of one (scenario, trial class) run."""

    scenario: str
    trial_class: str
    summary: SummaryStatistic
    trial_count: int
    limits: dict[str, Any] = field(default_factory=dict)
    artifact: str = ""


class TrialRunner:
    """
    Runs warmup plus measured trials and persists summaries.

    Args:
        settings: Loaded BenchSettings
        harness_factory: Returns an async context manager yielding a harness
            on a fresh page
        store: Artifact store (defaults to settings.output_dir)
    """

    def __init__(
        self,
        settings: BenchSettings,
        harness_factory: HarnessFactory,
        store: ArtifactStore | None = None,
    ) -> None:
        self.settings = settings
        self.harness_factory = harness_factory
        self.store = store if store is not None else ArtifactStore(settings.output_dir)

    async def run_all(self, scenarios: Sequence[Scenario]) -> list[TrialClassResult]:
        """Run every scenario and trial class, then write the aggregated table."""
        logger.info(
            f"Starting benchmark: {len(scenarios)} scenarios x "
            f"{len(self.settings.trial_classes)} trial classes, "
            f"{self.settings.trials} trials each ({self.settings.strategy})"
        )

        results: list[TrialClassResult] = []

        for i, scenario in enumerate(scenarios, start=1):
            logger.info(f"Progress: {i}/{len(scenarios)} ({scenario.name})")
            try:
                results.extend(await self.run_scenario(scenario))
            except Exception as e:
                logger.error(f"Scenario {scenario.name} failed: {e}")

        write_results_table(self.store, self.settings.trial_classes)
        logger.info(f"Benchmark complete: {len(results)} summaries written")
        return results

    async def run_scenario(self, scenario: Scenario) -> list[TrialClassResult]:
        return [
            await self.run_trial_class(scenario, trial_class)
            for trial_class in self.settings.trial_classes
        ]

    async def run_trial_class(self, scenario: Scenario, trial_class: TrialClass) -> TrialClassResult:
        settings = self.settings
        pauses = settings.pauses
        tag = f"{scenario.name} {trial_class.id}"

        async with self.harness_factory() as harness:
            observer = create_observer(
                settings.strategy,
                harness,
                scenario.fetch_regex,
                timeout_ms=settings.timeouts.trial_ms,
                settle_delay_ms=settings.timeouts.settle_delay_ms,
            )
            try:
                await harness.navigate(scenario.base_url)
                await harness.pause(pauses.after_load_ms)
                await self._prepare(harness, scenario)

                logger.info(f"[{tag}] Warmup run...")
                await self.run_trial(harness, observer, scenario, trial_class)
                logger.info(f"[{tag}] Warmup complete, starting measured runs...")
                await harness.pause(pauses.after_warmup_ms)

                trial_set: list[MetricRecord] = []
                for i in range(settings.trials):
                    logger.info(f"[{tag}] Run {i + 1}/{settings.trials}")
                    await harness.reload()
                    await harness.pause(pauses.after_reload_ms)
                    await self._prepare(harness, scenario)

                    record = await self.run_trial(harness, observer, scenario, trial_class)
                    trial_set.append(record)
                    logger.info(f"[{tag}] Run {i + 1} complete: {record.to_dict()}")
                    await harness.pause(pauses.between_trials_ms)
            finally:
                await observer.aclose()

        summary = summarize(trial_set)
        trial_count = len(trial_set)

        logger.info(f"[{tag}] final stats: {summary.to_dict()}")
        limits = check_limits(summary, trial_class.limits, label=tag)
        artifact = self.store.write(scenario.name, trial_class.id, summary)

        return TrialClassResult(
            scenario=scenario.name,
            trial_class=trial_class.id,
            summary=summary,
            trial_count=trial_count,
            limits=limits,
            artifact=str(artifact),
        )

    async def run_trial(
        self,
        harness: UIHarness,
        observer: Observer,
        scenario: Scenario,
        trial_class: TrialClass,
    ) -> MetricRecord:
        """Run one trial with a fresh TrialContext, discarded afterwards."""
        settings = self.settings
        selectors = scenario.selectors
        context = TrialContext(label=settings.label)

        async def action() -> None:
            await harness.fill(selectors.input, trial_class.prompt)
            if not await harness.wait_for(selectors.send, settings.timeouts.send_ready_ms):
                logger.warning(f"Send control {selectors.send} not attached, clicking anyway")
            await harness.pause(settings.pauses.before_click_ms)
            await harness.click(selectors.send)

        async def render_probe() -> None:
            if not await harness.wait_for(selectors.assistant, settings.timeouts.render_ms):
                raise TimeoutError(f"Assistant message {selectors.assistant} did not render")
            await harness.next_frame()

        try:
            return await observer.measure(context, action, render_probe)
        finally:
            await context.close()

    async def _prepare(self, harness: UIHarness, scenario: Scenario) -> None:
        for selector in scenario.setup:
            if await harness.count(selector) > 0:
                await harness.click(selector)
                await harness.pause(SETUP_CLICK_PAUSE_MS)
            else:
                logger.debug(f"Setup control {selector} not present on {scenario.name}")
