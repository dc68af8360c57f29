"""
Fakes for ui_latency_bench tests.

Provides:
- FakeClock: manually advanced millisecond clock
- FakeHarness: in-memory UIHarness recording calls and dispatching events
- ChunkStream: httpx byte stream yielding fixed chunks, advancing the clock
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import httpx


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class ChunkStream(httpx.AsyncByteStream):
    """
    Streams the given chunks, advancing the clock before each one.

    After the last chunk, raises fail_with if given, else sleeps stall_s
    (real seconds) if given, simulating a connection that stops delivering.
    """

    def __init__(
        self,
        chunks: list[bytes],
        clock: FakeClock | None = None,
        step_ms: float = 0,
        fail_with: Exception | None = None,
        stall_s: float = 0,
    ) -> None:
        self.chunks = chunks
        self.clock = clock
        self.step_ms = step_ms
        self.fail_with = fail_with
        self.stall_s = stall_s
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            if self.clock is not None:
                self.clock.advance(self.step_ms)
            yield chunk
        if self.fail_with is not None:
            raise self.fail_with
        if self.stall_s:
            await asyncio.sleep(self.stall_s)

    async def aclose(self) -> None:
        self.closed = True


class FakeHarness:
    """
    In-memory UIHarness.

    Attributes:
        calls: Ordered (method, args) log of UI primitives
        handlers: Subscribed handlers per event
        unsubscribed: Event names in the order they were unsubscribed
        on_click: Coroutine function run when the send control is clicked,
            receiving the harness (simulates the page's network traffic)
        present: Selector -> bool for wait_for()/count(); default True
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.handlers: dict[str, list[Callable[[Any], Any]]] = {"request": [], "response": []}
        self.unsubscribed: list[str] = []
        self.installed: list[Any] = []
        self.removed: list[Any] = []
        self.on_click: Callable[[FakeHarness], Awaitable[None]] | None = None
        self.present: dict[str, bool] = {}
        self.frame_ms = 16.0
        self.frames = 0

    async def navigate(self, url: str) -> None:
        self.calls.append(("navigate", (url,)))

    async def reload(self) -> None:
        self.calls.append(("reload", ()))

    async def fill(self, selector: str, text: str) -> None:
        self.calls.append(("fill", (selector, text)))

    async def click(self, selector: str) -> None:
        self.calls.append(("click", (selector,)))
        if self.on_click is not None and selector == "#send":
            await self.on_click(self)

    async def wait_for(self, selector: str, timeout_ms: float) -> bool:
        self.calls.append(("wait_for", (selector, timeout_ms)))
        return self.present.get(selector, True)

    async def count(self, selector: str) -> int:
        return 1 if self.present.get(selector, True) else 0

    async def pause(self, ms: float) -> None:
        self.calls.append(("pause", (ms,)))

    def subscribe(self, event: str, handler: Callable[[Any], Any]) -> None:
        self.handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Callable[[Any], Any]) -> None:
        self.unsubscribed.append(event)
        if handler in self.handlers[event]:
            self.handlers[event].remove(handler)

    async def emit(self, event: str, payload: Any) -> None:
        """Deliver an event to current subscribers, awaiting async handlers."""
        for handler in list(self.handlers[event]):
            result = handler(payload)
            if inspect.isawaitable(result):
                await result

    async def next_frame(self) -> None:
        self.frames += 1
        self.clock.advance(self.frame_ms)
        await asyncio.sleep(0)

    async def install_interceptor(self, interceptor: Any) -> None:
        self.installed.append(interceptor)

    async def remove_interceptor(self, interceptor: Any) -> None:
        self.removed.append(interceptor)

    def count_calls(self, name: str, *args: Any) -> int:
        return sum(1 for n, a in self.calls if n == name and (not args or a == args))


def request_payload(url: str, method: str = "POST", timestamp: float = 1_000.0) -> dict[str, Any]:
    return {"url": url, "method": method, "headers": {}, "timestamp": timestamp}


def response_payload(
    url: str,
    method: str = "POST",
    timestamp: float = 1_100.0,
    body: Callable[[], Awaitable[bytes]] | None = None,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    return {
        "url": url,
        "method": method,
        "headers": headers or {"content-type": "application/json"},
        "timestamp": timestamp,
        "body": body,
    }


def body_of(data: bytes, clock: FakeClock | None = None, read_ms: float = 0) -> Callable[[], Awaitable[bytes]]:
    """Body reader returning data, advancing the clock by read_ms."""

    async def read() -> bytes:
        if clock is not None:
            clock.advance(read_ms)
        return data

    return read


def streaming_body() -> Callable[[], Awaitable[bytes]]:
    """Body reader failing the way an unbuffered streamed response does."""

    async def read() -> bytes:
        raise RuntimeError("Response body is unavailable for redirect/streamed responses")

    return read
