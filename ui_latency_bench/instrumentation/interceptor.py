"""
In-page fetch instrumentation.

InPageInterceptor is an httpx transport that wraps the page's outbound call
mechanism. Requests whose URL does not match the pattern are handed to the
inner transport and the inner response is returned as-is. Matching requests
are timed:

    submit ──dispatch──> headers (ttfb_ms)
                          ├─ first chunk   (ttft_ms)
                          ├─ terminal chunk (ttl_ms, bytes_total)
                          └─ next paint frame after terminal chunk (render_ms)

Streamed bodies are wrapped by a tapping AsyncByteStream that yields the
exact chunks of the inner stream. Fully buffered bodies count as both first
and terminal chunk at header arrival.

Dispatch failures and streams failing mid-body emit a "<label>:error"
sample and re-raise the original exception unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import AsyncIterator, Awaitable, Callable

import httpx

from ui_latency_bench.instrumentation.context import TrialContext

logger = logging.getLogger(__name__)

# One frame at 60 Hz
FRAME_INTERVAL_S = 1 / 60


async def next_animation_frame() -> None:
    """Default paint-frame probe when no page is available."""
    await asyncio.sleep(FRAME_INTERVAL_S)


class TappedByteStream(httpx.AsyncByteStream):
    """
    Finite, non-restartable byte stream that reports chunk boundaries.

    Yields the inner stream's chunks unchanged. on_chunk fires for every
    non-empty chunk, on_complete once after the inner stream is exhausted,
    on_error once if the inner stream fails; the failure is re-raised.
    """

    def __init__(
        self,
        stream: httpx.AsyncByteStream,
        on_chunk: Callable[[bytes], None],
        on_complete: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        self._stream = stream
        self._on_chunk = on_chunk
        self._on_complete = on_complete
        self._on_error = on_error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._stream:
                if chunk:
                    self._on_chunk(chunk)
                yield chunk
        except Exception as e:
            self._on_error(e)
            raise
        self._on_complete()

    async def aclose(self) -> None:
        await self._stream.aclose()


class InPageInterceptor(httpx.AsyncBaseTransport):
    """
    Transport wrapper emitting timing samples into a TrialContext.

    Args:
        pattern: Regex (string or compiled) selecting the calls to time
        context: TrialContext receiving the samples
        transport: Inner transport performing the real request
        next_frame: Coroutine function resolving on the next paint frame

    Example:
        >>> interceptor = InPageInterceptor(r"/api/chat", context)
        >>> async with httpx.AsyncClient(transport=interceptor) as client:
        ...     await client.post("https://ui.example/api/chat", json=payload)
        >>> context.latest_value("ttfb_ms")
    """

    def __init__(
        self,
        pattern: str | re.Pattern[str],
        context: TrialContext,
        transport: httpx.AsyncBaseTransport | None = None,
        next_frame: Callable[[], Awaitable[None]] = next_animation_frame,
    ) -> None:
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.context = context
        self._transport = transport if transport is not None else httpx.AsyncHTTPTransport()
        self._next_frame = next_frame

    @property
    def label(self) -> str:
        return self.context.label

    def matches(self, url: str) -> bool:
        return self.pattern.search(url) is not None

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if not self.matches(url):
            return await self._transport.handle_async_request(request)

        context = self.context
        clock = context.clock
        logger.debug(f"Intercepted {request.method} {url}")

        submitted_at = clock()
        try:
            response = await self._transport.handle_async_request(request)
        except Exception as e:
            context.record("error", 1, {"message": str(e), "url": url})
            raise

        headers_at = clock()
        context.matched_url = url
        context.record("ttfb_ms", headers_at - submitted_at, {"url": url})

        if isinstance(response.stream, httpx.ByteStream):
            # Fully buffered: headers and body arrived together
            size = sum(len(chunk) for chunk in response.stream)
            context.record("ttft_ms", headers_at - submitted_at)
            self._complete(submitted_at, headers_at, size)
            return response

        received = 0
        first_chunk = True

        def on_chunk(chunk: bytes) -> None:
            nonlocal received, first_chunk
            received += len(chunk)
            if first_chunk:
                first_chunk = False
                context.record("ttft_ms", clock() - submitted_at)

        def on_complete() -> None:
            self._complete(submitted_at, clock(), received)

        def on_error(e: Exception) -> None:
            context.record("error", 1, {"message": str(e), "url": url})

        return httpx.Response(
            status_code=response.status_code,
            headers=response.headers,
            stream=TappedByteStream(response.stream, on_chunk, on_complete, on_error),
            extensions=response.extensions,
        )

    def _complete(self, submitted_at: float, last_byte_at: float, size: int) -> None:
        context = self.context
        context.record("ttl_ms", last_byte_at - submitted_at)
        context.record("bytes_total", size)
        if context.closed:
            return
        context.spawn(self._mark_render(last_byte_at))

    async def _mark_render(self, last_byte_at: float) -> None:
        context = self.context
        try:
            await self._next_frame()
        except Exception as e:
            logger.warning(f"Paint frame probe failed: {e}")
            context.record("error", 1, {"message": f"render probe: {e}"})
            return
        context.record("render_ms", context.clock() - last_byte_at)

    async def aclose(self) -> None:
        await self._transport.aclose()
