"""
UI harness layer.

The harness drives the UI (navigate, fill, click, wait) and exposes the two
network lifecycle feeds the out-of-page observer subscribes to. The
Playwright implementation lives in ui_latency_bench.harness.playwright_harness
and is imported on demand.
"""

from __future__ import annotations

from ui_latency_bench.harness.base import EVENTS, EventHandler, UIHarness

__all__ = ["EVENTS", "EventHandler", "UIHarness"]
