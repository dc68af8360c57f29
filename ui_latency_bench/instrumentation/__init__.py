"""
Latency instrumentation.

Two mutually exclusive observation strategies produce one MetricRecord per
trial:

- InPageObserver: wraps the page's outbound call mechanism with an
  InPageInterceptor and reads samples back from the TrialContext
- OutOfPageObserver: subscribes to the harness's request/response feeds and
  correlates timestamps

Both receive a fresh TrialContext per trial; no state survives a trial.
"""

from __future__ import annotations

from ui_latency_bench.instrumentation.context import TrialContext
from ui_latency_bench.instrumentation.interceptor import InPageInterceptor
from ui_latency_bench.instrumentation.observer import (
    InPageObserver,
    Observer,
    OutOfPageObserver,
    create_observer,
)
from ui_latency_bench.instrumentation.rules import is_excluded, is_relevant

__all__ = [
    "InPageInterceptor",
    "InPageObserver",
    "Observer",
    "OutOfPageObserver",
    "TrialContext",
    "create_observer",
    "is_excluded",
    "is_relevant",
]
