"""
Per-trial instrumentation context.

A TrialContext is created by the TrialRunner for exactly one trial, handed
to the active observer, and closed at the trial boundary. It owns:

- the MetricSample buffer written by InPageInterceptor
- the out-of-page correlation state (request latch, claimed response)
- background tasks spawned during the trial (render-frame probes)

Known limitation: concurrently in-flight matching calls write to the same
buffer, keyed only by "<label>:<field>". Readers resolve the ambiguity by
taking the most recent sample of each name (latest()).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

from ui_latency_bench.types import MetricRecord, MetricSample, monotonic_ms

logger = logging.getLogger(__name__)

# Sample fields that mark an in-page exchange as finished
TERMINAL_FIELDS = frozenset({"render_ms", "error"})


class TrialContext:
    """
    Mutable state scoped to a single trial.

    Attributes:
        label: Sample name prefix ("chat" by default)
        samples: Ordered MetricSample buffer
        request_started_at: Latched timestamp of the first relevant request
        claimed: True once a relevant response has been taken for this trial
        released: True once observer subscriptions have been removed
        matched_url: URL of the measured exchange
    """

    def __init__(self, label: str = "chat", clock: Callable[[], float] = monotonic_ms) -> None:
        self.label = label
        self.clock = clock
        self.samples: list[MetricSample] = []
        self.request_started_at: float | None = None
        self.claimed = False
        self.released = False
        self.matched_url = ""
        self.settled = asyncio.Event()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    # =========================================================================
    # Samples
    # =========================================================================

    def key(self, field: str) -> str:
        return f"{self.label}:{field}"

    def record(self, field: str, value: float, meta: dict[str, Any] | None = None) -> MetricSample:
        """Append a sample named "<label>:<field>" stamped with the context clock."""
        sample = MetricSample(metric=self.key(field), value=value, meta=meta, ts=self.clock())
        self.samples.append(sample)
        logger.debug(f"Sample {sample.metric}={value}")

        if field in TERMINAL_FIELDS:
            self.settled.set()
        return sample

    def latest(self, field: str) -> MetricSample | None:
        """Most recent sample for a field, or None."""
        name = self.key(field)
        for sample in reversed(self.samples):
            if sample.metric == name:
                return sample
        return None

    def latest_value(self, field: str) -> float | None:
        sample = self.latest(field)
        return sample.value if sample is not None else None

    def to_record(self) -> MetricRecord:
        """Finalize buffered samples into a MetricRecord (latest sample wins)."""
        return MetricRecord(
            ttfb_ms=self.latest_value("ttfb_ms"),
            ttft_ms=self.latest_value("ttft_ms"),
            ttl_ms=self.latest_value("ttl_ms"),
            render_ms=self.latest_value("render_ms"),
            bytes_total=self.latest_value("bytes_total"),
            url=self.matched_url,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run a coroutine in the background for the lifetime of this trial."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Cancel outstanding tasks and drop buffered samples."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.samples.clear()
