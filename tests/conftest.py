"""
Pytest configuration and fixtures for UI Latency Bench tests.
"""

from contextlib import asynccontextmanager

import pytest

from tests.support.helpers.fakes import FakeClock, FakeHarness
from ui_latency_bench.config import parse_settings
from ui_latency_bench.instrumentation.context import TrialContext
from ui_latency_bench.types import Scenario

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)


CHAT_URL = "http://ui.test/api/chat"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def harness(clock) -> FakeHarness:
    return FakeHarness(clock)


@pytest.fixture
def context(clock) -> TrialContext:
    """Fresh per-trial context on the fake clock."""
    return TrialContext(label="chat", clock=clock)


@pytest.fixture
def scenario() -> Scenario:
    return Scenario.from_dict(
        {
            "name": "next-chat",
            "baseUrl": "http://ui.test/",
            "fetchRegex": "/api/(chat|runs)",
            "selectors": {"input": "#input", "send": "#send", "assistant": ".assistant"},
            "setup": ["#mode-toggle"],
        }
    )


@pytest.fixture
def config_dict(tmp_path) -> dict:
    """Merged config with millisecond-scale waits for fast tests."""
    return {
        "environment": "development",
        "trials": 3,
        "strategy": "out_of_page",
        "label": "chat",
        "paths": {"targets": str(tmp_path / "targets.json"), "output_dir": str(tmp_path / "artifacts")},
        "timeouts": {"trial_ms": 200, "settle_delay_ms": 5, "render_ms": 50, "send_ready_ms": 50},
        "trial_classes": [
            {
                "id": "P1",
                "name": "Simple query",
                "prompt": "Show me Mohamed Salah",
                "report_fields": ["ttfb_ms", "ttft_ms", "render_ms"],
                "limits": {"ttfb_ms": {"max": 10000}},
            },
        ],
    }


@pytest.fixture
def settings(config_dict):
    return parse_settings(config_dict)


@pytest.fixture
def harness_factory(harness):
    """Factory handing out the shared FakeHarness, counting opened pages."""
    opened = []

    @asynccontextmanager
    async def open_page():
        opened.append(harness)
        yield harness

    open_page.opened = opened
    return open_page
