"""
Exception hierarchy for ui_latency_bench.

All exceptions inherit from BenchError for consistent error handling.
Missing metrics are never errors: they are reported as the -1 sentinel.
"""

from __future__ import annotations


class BenchError(Exception):
    """
    Base exception for all ui_latency_bench errors.

    Allows catch-all handling around a benchmark run:

        try:
            await runner.run_all(scenarios)
        except BenchError as e:
            logger.error(f"Benchmark failed: {e}")
    """

    pass


class ConfigurationError(BenchError):
    """
    Raised when configuration or scenario input is invalid.

    This includes:
    - Missing config.yaml
    - Unknown ENVIRONMENT or strategy value
    - Scenario entries missing required keys
    - Invalid fetch regex
    """

    pass


class EventSchemaError(BenchError):
    """
    Raised when a network event payload fails schema validation.

    Payloads are validated once, at the subscription boundary, before any
    observer logic reads them.
    """

    def __init__(self, event: str, reason: str) -> None:
        self.event = event
        self.reason = reason
        self.message = f"Invalid {event} event payload: {reason}"
        super().__init__(self.message)


class HarnessError(BenchError):
    """
    Raised by a UI harness for its own failures.

    This includes:
    - Browser failed to launch
    - Interceptor installed twice on one page
    - Unsupported event name passed to subscribe()
    """

    pass
