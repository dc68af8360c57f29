"""
UI harness contract.

Events delivered to subscribers are plain mappings, validated by the
observer with RequestEvent/ResponseEvent.from_payload:

    request:  {"url", "method", "headers", "timestamp"}
    response: {"url", "method", "headers", "timestamp", "body"}

"timestamp" must come from ui_latency_bench.types.monotonic_ms so it is
comparable with observer clock readings. "body" is a coroutine function
returning the buffered payload, raising if the payload was streamed.

Handlers may be plain functions or coroutine functions; a harness must
schedule coroutine handlers on the running loop without blocking it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, Union

if TYPE_CHECKING:
    from ui_latency_bench.instrumentation.interceptor import InPageInterceptor

EVENTS = ("request", "response")

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class UIHarness(Protocol):
    """Primitives the benchmark needs from a browser automation layer."""

    async def navigate(self, url: str) -> None: ...

    async def reload(self) -> None: ...

    async def fill(self, selector: str, text: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def wait_for(self, selector: str, timeout_ms: float) -> bool:
        """Wait until selector is attached; False on timeout."""
        ...

    async def count(self, selector: str) -> int: ...

    async def pause(self, ms: float) -> None: ...

    def subscribe(self, event: str, handler: EventHandler) -> None: ...

    def unsubscribe(self, event: str, handler: EventHandler) -> None: ...

    async def next_frame(self) -> None:
        """Resolve on the page's next paint frame."""
        ...

    async def install_interceptor(self, interceptor: InPageInterceptor) -> None: ...

    async def remove_interceptor(self, interceptor: InPageInterceptor) -> None: ...
