"""
Trial observers.

An observer measures exactly one trial: it attaches its instrumentation,
runs the UI action, waits for the exchange to finish (or the trial timeout)
and returns one MetricRecord. The runner picks one strategy per run; the two
are never active for the same exchange, which would double count.

OutOfPageObserver correlates the harness's request-dispatched and
response-received feeds:

1. Latch the timestamp of the first relevant request (first wins)
2. On the first relevant response, ttfb_ms = ttft_ms = t_response - latch
   (header arrival is the only boundary visible from outside the page)
3. Read the full payload: bytes_total = len(body), ttl_ms = now - latch.
   If the payload cannot be read (streamed, not buffered), wait the settle
   delay and take ttl_ms = now - latch as an estimate
4. Unsubscribe both feeds exactly once, whichever path completes first
5. No relevant response before the trial timeout -> all -1 record; a
   response claimed but not finished in time keeps its partial metrics
   and its handling is cancelled

Known limitation: the settle-delay path cannot tell a slow stream from an
observation blind spot and inflates ttl_ms for fast streams that take it.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import httpx

from ui_latency_bench.exceptions import ConfigurationError, EventSchemaError
from ui_latency_bench.harness.base import UIHarness
from ui_latency_bench.instrumentation.context import TrialContext
from ui_latency_bench.instrumentation.interceptor import InPageInterceptor
from ui_latency_bench.instrumentation.rules import is_relevant
from ui_latency_bench.types import UNOBSERVED, MetricRecord, RequestEvent, ResponseEvent

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[None]]
RenderProbe = Callable[[], Awaitable[Any]]

DEFAULT_TRIAL_TIMEOUT_MS = 45_000
DEFAULT_SETTLE_DELAY_MS = 3_000

STRATEGIES = ("out_of_page", "in_page")


async def _cancel(tasks: list[asyncio.Task[None]]) -> None:
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


class Observer(Protocol):
    """Strategy measuring one trial into one MetricRecord."""

    strategy: str

    async def measure(
        self,
        context: TrialContext,
        action: Action,
        render_probe: RenderProbe | None = None,
    ) -> MetricRecord: ...

    async def aclose(self) -> None: ...


# =============================================================================
# Out-of-page
# =============================================================================


@dataclass
class _Capture:
    """Partial metrics accumulated by the response handler."""

    ttfb_ms: float = UNOBSERVED
    ttft_ms: float = UNOBSERVED
    ttl_ms: float = UNOBSERVED
    render_ms: float = UNOBSERVED
    bytes_total: int = UNOBSERVED
    response_end: float | None = None

    def finalize(self, url: str) -> MetricRecord:
        ttfb = self.ttfb_ms if self.ttfb_ms > 0 else UNOBSERVED
        return MetricRecord(
            ttfb_ms=ttfb,
            ttft_ms=self.ttft_ms if self.ttft_ms > 0 else ttfb,
            ttl_ms=self.ttl_ms if self.ttl_ms > 0 else ttfb,
            render_ms=self.render_ms,
            bytes_total=self.bytes_total,
            url=url,
        )


class OutOfPageObserver:
    """
    Derives metrics from the harness network lifecycle feeds.

    Args:
        harness: UI harness providing request/response subscriptions
        fetch_regex: Scenario pattern the measured URL must match
        timeout_ms: Overall wait for a relevant response after the action
        settle_delay_ms: Fixed wait used when a streamed body cannot be read
    """

    strategy = "out_of_page"

    def __init__(
        self,
        harness: UIHarness,
        fetch_regex: str,
        timeout_ms: float = DEFAULT_TRIAL_TIMEOUT_MS,
        settle_delay_ms: float = DEFAULT_SETTLE_DELAY_MS,
    ) -> None:
        self.harness = harness
        self.pattern = re.compile(fetch_regex)
        self.timeout_ms = timeout_ms
        self.settle_delay_ms = settle_delay_ms

    async def measure(
        self,
        context: TrialContext,
        action: Action,
        render_probe: RenderProbe | None = None,
    ) -> MetricRecord:
        loop = asyncio.get_running_loop()
        done: asyncio.Future[None] = loop.create_future()
        capture = _Capture()

        def on_request(payload: Any) -> None:
            try:
                event = RequestEvent.from_payload(payload)
            except EventSchemaError as e:
                logger.warning(f"Dropped request event: {e}")
                return

            if context.released or context.request_started_at is not None:
                return
            if is_relevant(event.url, event.method, self.pattern):
                context.request_started_at = event.timestamp
                logger.info(f"Request started: {event.method} {event.url}")

        async def on_response(payload: Any) -> None:
            try:
                event = ResponseEvent.from_payload(payload)
            except EventSchemaError as e:
                logger.warning(f"Dropped response event: {e}")
                return

            if context.released or context.claimed:
                return
            if not is_relevant(event.url, event.method, self.pattern):
                logger.debug(f"Skipping {event.method} {event.url}")
                return

            context.claimed = True
            context.matched_url = event.url
            logger.info(f"Response {event.method} {event.url} ({event.content_type})")

            handlers.append(context.spawn(handle_response(event)))

        async def handle_response(event: ResponseEvent) -> None:
            try:
                await self._capture(context, event, capture)
            except Exception as e:
                logger.error(f"Error processing response {event.url}: {e}")
            finally:
                self._release(context, on_request, on_response)
                if not done.done():
                    done.set_result(None)

        handlers: list[asyncio.Task[None]] = []
        self.harness.subscribe("request", on_request)
        self.harness.subscribe("response", on_response)

        try:
            await action()
            await asyncio.wait_for(asyncio.shield(done), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            await _cancel(handlers)
            if context.claimed:
                logger.warning(
                    f"Response {context.matched_url} not complete within "
                    f"{self.timeout_ms:.0f}ms, keeping partial metrics"
                )
                return capture.finalize(context.matched_url)
            logger.warning(
                f"No relevant response within {self.timeout_ms:.0f}ms "
                f"(pattern={self.pattern.pattern})"
            )
            return MetricRecord.unobserved()
        finally:
            await _cancel(handlers)
            self._release(context, on_request, on_response)

        if render_probe is not None:
            render_start = capture.response_end if capture.response_end is not None else context.clock()
            try:
                await render_probe()
                capture.render_ms = context.clock() - render_start
            except Exception as e:
                logger.warning(f"Render probe failed: {e}")

        record = capture.finalize(context.matched_url)
        logger.info(
            f"Final metrics - TTFB: {record.ttfb_ms}ms, TTFT: {record.ttft_ms}ms, "
            f"TTL: {record.ttl_ms}ms, Bytes: {record.bytes_total}"
        )
        return record

    async def _capture(self, context: TrialContext, event: ResponseEvent, capture: _Capture) -> None:
        latch = context.request_started_at
        if latch is not None:
            capture.ttfb_ms = event.timestamp - latch
            capture.ttft_ms = capture.ttfb_ms
            logger.info(f"TTFB: {capture.ttfb_ms:.0f}ms")
        else:
            logger.warning(f"Response {event.url} arrived without a latched request")

        try:
            if event.body is None:
                raise LookupError("response carries no body reader")
            body = await event.body()
        except Exception as e:
            logger.info(
                f"Body unavailable ({type(e).__name__}), treating as stream; "
                f"settling {self.settle_delay_ms:.0f}ms"
            )
            await asyncio.sleep(self.settle_delay_ms / 1000)
            capture.response_end = context.clock()
            if latch is not None:
                capture.ttl_ms = capture.response_end - latch
            logger.info(f"Streaming complete (estimated). TTL: {capture.ttl_ms:.0f}ms")
            return

        capture.response_end = context.clock()
        capture.bytes_total = len(body)
        if latch is not None:
            capture.ttl_ms = capture.response_end - latch
        logger.info(f"Response complete. Bytes: {capture.bytes_total}, TTL: {capture.ttl_ms:.0f}ms")

    def _release(self, context: TrialContext, on_request: Any, on_response: Any) -> None:
        if context.released:
            return
        context.released = True
        self.harness.unsubscribe("response", on_response)
        self.harness.unsubscribe("request", on_request)

    async def aclose(self) -> None:
        return None


# =============================================================================
# In-page
# =============================================================================


class InPageObserver:
    """
    Measures a trial through an InPageInterceptor installed on the harness.

    The interceptor writes samples into the trial's context; the record is
    built from the most recent sample of each field once a render_ms or
    error sample arrives. A trial timing out after header arrival keeps the
    samples taken so far.

    Args:
        harness: UI harness able to install interceptors
        fetch_regex: Pattern selecting the calls to time
        timeout_ms: Overall wait for the exchange to settle after the action
        transport: Inner transport shared by every trial's interceptor
    """

    strategy = "in_page"

    def __init__(
        self,
        harness: UIHarness,
        fetch_regex: str,
        timeout_ms: float = DEFAULT_TRIAL_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.harness = harness
        self.pattern = re.compile(fetch_regex)
        self.timeout_ms = timeout_ms
        self._transport = transport if transport is not None else httpx.AsyncHTTPTransport()

    async def measure(
        self,
        context: TrialContext,
        action: Action,
        render_probe: RenderProbe | None = None,
    ) -> MetricRecord:
        # The interceptor schedules its own paint-frame probe
        interceptor = InPageInterceptor(
            self.pattern,
            context,
            transport=self._transport,
            next_frame=self.harness.next_frame,
        )
        await self.harness.install_interceptor(interceptor)

        try:
            await action()
            await asyncio.wait_for(context.settled.wait(), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning(
                f"In-page exchange did not settle within {self.timeout_ms:.0f}ms "
                f"(pattern={self.pattern.pattern})"
            )
            if context.latest("ttfb_ms") is None:
                return MetricRecord.unobserved()
            return context.to_record()
        finally:
            await self.harness.remove_interceptor(interceptor)

        error = context.latest("error")
        if error is not None:
            logger.warning(f"In-page exchange reported an error: {(error.meta or {}).get('message')}")

        record = context.to_record()
        logger.info(
            f"Final metrics - TTFB: {record.ttfb_ms}ms, TTFT: {record.ttft_ms}ms, "
            f"TTL: {record.ttl_ms}ms, Render: {record.render_ms}ms, Bytes: {record.bytes_total}"
        )
        return record

    async def aclose(self) -> None:
        await self._transport.aclose()


def create_observer(
    strategy: str,
    harness: UIHarness,
    fetch_regex: str,
    timeout_ms: float = DEFAULT_TRIAL_TIMEOUT_MS,
    settle_delay_ms: float = DEFAULT_SETTLE_DELAY_MS,
) -> Observer:
    """
    Build the observer for a strategy name.

    Raises:
        ConfigurationError: If the strategy is unknown
    """
    if strategy == "out_of_page":
        return OutOfPageObserver(harness, fetch_regex, timeout_ms=timeout_ms, settle_delay_ms=settle_delay_ms)
    if strategy == "in_page":
        return InPageObserver(harness, fetch_regex, timeout_ms=timeout_ms)
    raise ConfigurationError(f"Unknown strategy '{strategy}'. Must be one of: {', '.join(STRATEGIES)}")
