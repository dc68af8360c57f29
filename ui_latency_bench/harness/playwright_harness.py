"""
Playwright implementation of the UI harness.

Drives Chromium through playwright.async_api:

- navigate/reload wait for network idle
- request/response listeners are translated into event payloads stamped
  with monotonic_ms()
- next_frame resolves on requestAnimationFrame
- in-page interceptors are installed with page.route(): matching page
  requests are performed through the interceptor transport and the route
  is fulfilled with the same status, headers and body
- network conditions are emulated through CDP once per page, on first
  navigation

Known limitation: routed responses reach the page only after the body has
been read in full, so the page sees streamed bodies arrive at once.
"""

from __future__ import annotations

import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import httpx
from playwright.async_api import Page, Request, Response, Route, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ui_latency_bench.config import BenchSettings, NetworkProfile
from ui_latency_bench.exceptions import HarnessError
from ui_latency_bench.harness.base import EVENTS, EventHandler
from ui_latency_bench.instrumentation.interceptor import InPageInterceptor
from ui_latency_bench.types import monotonic_ms

logger = logging.getLogger(__name__)

NEXT_FRAME_JS = "() => new Promise(resolve => requestAnimationFrame(() => resolve()))"


class PlaywrightHarness:
    """
    UIHarness over a single Playwright page.

    Args:
        page: Page to drive
        network: Conditions to emulate on first navigation (None disables)
        clock: Clock stamping event payloads
    """

    def __init__(
        self,
        page: Page,
        network: NetworkProfile | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.page = page
        self.network = network
        self.clock = clock
        self._emulating = False
        self._listeners: dict[tuple[str, int], Callable[[Any], Any]] = {}
        self._routes: dict[int, Callable[[Route], Any]] = {}

    # =========================================================================
    # Navigation and input
    # =========================================================================

    async def navigate(self, url: str) -> None:
        await self.page.goto(url, wait_until="networkidle")
        if self.network is not None and not self._emulating:
            await self.emulate_network(self.network)

    async def reload(self) -> None:
        await self.page.reload(wait_until="networkidle")

    async def fill(self, selector: str, text: str) -> None:
        await self.page.locator(selector).fill(text)

    async def click(self, selector: str) -> None:
        await self.page.locator(selector).click(force=True)

    async def wait_for(self, selector: str, timeout_ms: float) -> bool:
        try:
            await self.page.locator(selector).first.wait_for(state="attached", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    async def count(self, selector: str) -> int:
        return await self.page.locator(selector).count()

    async def pause(self, ms: float) -> None:
        await self.page.wait_for_timeout(ms)

    async def next_frame(self) -> None:
        await self.page.evaluate(NEXT_FRAME_JS)

    async def emulate_network(self, profile: NetworkProfile) -> None:
        """Apply network conditions to this page through a CDP session."""
        client = await self.page.context.new_cdp_session(self.page)
        await client.send("Network.enable")
        await client.send(
            "Network.emulateNetworkConditions",
            {
                "offline": profile.offline,
                "latency": profile.latency_ms,
                "downloadThroughput": profile.download_bytes_per_s,
                "uploadThroughput": profile.upload_bytes_per_s,
                "connectionType": profile.connection_type,
            },
        )
        self._emulating = True
        logger.info(
            f"Network emulation active: {profile.latency_ms}ms latency, "
            f"{profile.download_bytes_per_s:.0f}B/s down, {profile.upload_bytes_per_s:.0f}B/s up"
        )

    # =========================================================================
    # Network lifecycle feeds
    # =========================================================================

    def subscribe(self, event: str, handler: EventHandler) -> None:
        if event not in EVENTS:
            raise HarnessError(f"Unsupported event '{event}'. Must be one of: {', '.join(EVENTS)}")

        to_payload = self._request_payload if event == "request" else self._response_payload

        if inspect.iscoroutinefunction(handler):

            async def listener(obj: Any) -> None:
                await handler(to_payload(obj))

        else:

            def listener(obj: Any) -> None:
                handler(to_payload(obj))

        self._listeners[(event, id(handler))] = listener
        self.page.on(event, listener)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        listener = self._listeners.pop((event, id(handler)), None)
        if listener is not None:
            self.page.remove_listener(event, listener)

    def _request_payload(self, request: Request) -> dict[str, Any]:
        return {
            "url": request.url,
            "method": request.method,
            "headers": request.headers,
            "timestamp": self.clock(),
        }

    def _response_payload(self, response: Response) -> dict[str, Any]:
        return {
            "url": response.url,
            "method": response.request.method,
            "headers": response.headers,
            "timestamp": self.clock(),
            "body": response.body,
        }

    # =========================================================================
    # In-page interception
    # =========================================================================

    async def install_interceptor(self, interceptor: InPageInterceptor) -> None:
        if id(interceptor) in self._routes:
            raise HarnessError("Interceptor is already installed on this page")

        async def handle(route: Route) -> None:
            await self._fulfill_through(interceptor, route)

        self._routes[id(interceptor)] = handle
        await self.page.route(interceptor.pattern, handle)

    async def remove_interceptor(self, interceptor: InPageInterceptor) -> None:
        handle = self._routes.pop(id(interceptor), None)
        if handle is not None:
            await self.page.unroute(interceptor.pattern, handle)

    async def _fulfill_through(self, interceptor: InPageInterceptor, route: Route) -> None:
        request = route.request
        headers = {k: v for k, v in request.headers.items() if k.lower() != "content-length"}
        # Keep the body byte-identical between transport and page
        headers["accept-encoding"] = "identity"

        http_request = httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.post_data_buffer,
        )

        try:
            response = await interceptor.handle_async_request(http_request)
        except Exception as e:
            logger.warning(f"Routed request failed: {request.method} {request.url}: {e}")
            await route.abort()
            return

        try:
            body = await response.aread()
        except Exception as e:
            logger.warning(f"Routed response failed mid-body: {request.method} {request.url}: {e}")
            await route.abort()
            return
        finally:
            await response.aclose()

        await route.fulfill(
            status=response.status_code,
            headers=dict(response.headers),
            body=body,
        )


@asynccontextmanager
async def launch_browser(settings: BenchSettings) -> AsyncIterator[Callable[[], Any]]:
    """
    Start Chromium and yield a factory of fresh-page harness contexts.

    Example:
        >>> async with launch_browser(settings) as open_page:
        ...     async with open_page() as harness:
        ...         await harness.navigate("http://localhost:3000")
    """
    options = settings.browser

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=options.headless)
        logger.info(f"Chromium launched (headless={options.headless})")

        @asynccontextmanager
        async def open_page() -> AsyncIterator[PlaywrightHarness]:
            context = await browser.new_context(
                viewport={"width": options.viewport_width, "height": options.viewport_height},
                ignore_https_errors=options.ignore_https_errors,
            )
            page = await context.new_page()
            try:
                yield PlaywrightHarness(page, network=settings.network)
            finally:
                await context.close()

        try:
            yield open_page
        finally:
            await browser.close()
