"""
Type definitions for ui_latency_bench.

These dataclasses represent the raw samples, finalized records, summary
statistics, network event schemas and scenario inputs shared by the
instrumentation and benchmarking layers.

Numeric metric fields follow one invariant: a value is either a non-negative
integer (milliseconds or bytes) or the sentinel -1 meaning "not observed".
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from ui_latency_bench.exceptions import ConfigurationError, EventSchemaError

# Sentinel for a metric that was not observed
UNOBSERVED = -1

# Metric fields in report order
METRIC_FIELDS: tuple[str, ...] = (
    "ttfb_ms",
    "ttft_ms",
    "ttl_ms",
    "render_ms",
    "bytes_total",
)


def monotonic_ms() -> float:
    """Shared millisecond clock for event timestamps and observer timing."""
    return time.monotonic() * 1000.0


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves rounding up.

    Python's round() uses banker's rounding (112.5 -> 112); latency reports
    use the conventional rule instead (112.5 -> 113).
    """
    return int(math.floor(value + 0.5))


def _metric_value(value: float | int | None) -> int:
    if value is None or value < 0:
        return UNOBSERVED
    return round_half_up(value)


# =============================================================================
# Samples and Records
# =============================================================================


@dataclass
class MetricSample:
    """
    Raw timestamped event emitted by the in-page interceptor.

    Attributes:
        metric: Sample name in "<label>:<field>" form, e.g. "chat:ttfb_ms"
        value: Measured value (milliseconds, bytes, or 1 for error markers)
        meta: Optional diagnostic payload (error message, matched url)
        ts: Clock reading when the sample was recorded
    """

    metric: str
    value: float
    meta: dict[str, Any] | None = None
    ts: float = field(default_factory=monotonic_ms)


@dataclass(frozen=True)
class MetricRecord:
    """
    Finalized metrics for one trial. Exactly one per completed trial.

    Attributes:
        ttfb_ms: Time to first byte (header arrival)
        ttft_ms: Time to first streamed chunk
        ttl_ms: Time to last byte
        render_ms: Last byte to next observed paint frame
        bytes_total: Response body size in bytes
        url: URL of the measured exchange ("" when nothing was observed)
    """

    ttfb_ms: int = UNOBSERVED
    ttft_ms: int = UNOBSERVED
    ttl_ms: int = UNOBSERVED
    render_ms: int = UNOBSERVED
    bytes_total: int = UNOBSERVED
    url: str = ""

    def __post_init__(self) -> None:
        for name in METRIC_FIELDS:
            object.__setattr__(self, name, _metric_value(getattr(self, name)))

    @classmethod
    def unobserved(cls) -> MetricRecord:
        """Sentinel record for a trial that observed nothing."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "ttfb_ms": self.ttfb_ms,
            "ttft_ms": self.ttft_ms,
            "ttl_ms": self.ttl_ms,
            "render_ms": self.render_ms,
            "bytes_total": self.bytes_total,
            "url": self.url,
        }


@dataclass(frozen=True)
class FieldSummary:
    """Mean and median of one metric field across a TrialSet."""

    mean: int = UNOBSERVED
    median: int = UNOBSERVED


@dataclass(frozen=True)
class SummaryStatistic:
    """
    Per-field summary of a TrialSet.

    Serialized flat, as written to artifacts:
        {"ttfb_ms": 120, "ttfb_ms_median": 118, "ttft_ms": ..., ...}
    """

    fields: Mapping[str, FieldSummary]

    def __getitem__(self, name: str) -> FieldSummary:
        return self.fields[name]

    def to_dict(self) -> dict[str, int]:
        flat: dict[str, int] = {}
        for name in METRIC_FIELDS:
            summary = self.fields.get(name, FieldSummary())
            flat[name] = summary.mean
            flat[f"{name}_median"] = summary.median
        return flat

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SummaryStatistic:
        return cls(
            fields={
                name: FieldSummary(
                    mean=int(data.get(name, UNOBSERVED)),
                    median=int(data.get(f"{name}_median", UNOBSERVED)),
                )
                for name in METRIC_FIELDS
            }
        )


# =============================================================================
# Network Event Schemas
# =============================================================================


def _require_str(event: str, payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise EventSchemaError(event, f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _require_timestamp(event: str, payload: Mapping[str, Any]) -> float:
    value = payload.get("timestamp")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EventSchemaError(event, "'timestamp' must be a number")
    if value < 0:
        raise EventSchemaError(event, "'timestamp' must be non-negative")
    return float(value)


def _require_headers(event: str, payload: Mapping[str, Any]) -> dict[str, str]:
    headers = payload.get("headers") or {}
    if not isinstance(headers, Mapping):
        raise EventSchemaError(event, "'headers' must be a mapping")
    return {str(k).lower(): str(v) for k, v in headers.items()}


@dataclass(frozen=True)
class RequestEvent:
    """A request-dispatched notification from the harness."""

    url: str
    method: str
    headers: dict[str, str]
    timestamp: float

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> RequestEvent:
        if not isinstance(payload, Mapping):
            raise EventSchemaError("request", "payload must be a mapping")
        return cls(
            url=_require_str("request", payload, "url"),
            method=_require_str("request", payload, "method").upper(),
            headers=_require_headers("request", payload),
            timestamp=_require_timestamp("request", payload),
        )


@dataclass(frozen=True)
class ResponseEvent:
    """
    A response-received notification from the harness.

    Attributes:
        url: Response URL
        method: Method of the originating request
        headers: Lower-cased response headers
        timestamp: Clock reading at header arrival
        body: Coroutine function returning the full payload; raises when the
            payload is not fully buffered (streamed responses)
    """

    url: str
    method: str
    headers: dict[str, str]
    timestamp: float
    body: Callable[[], Awaitable[bytes]] | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ResponseEvent:
        if not isinstance(payload, Mapping):
            raise EventSchemaError("response", "payload must be a mapping")
        body = payload.get("body")
        if body is not None and not callable(body):
            raise EventSchemaError("response", "'body' must be callable")
        return cls(
            url=_require_str("response", payload, "url"),
            method=_require_str("response", payload, "method").upper(),
            headers=_require_headers("response", payload),
            timestamp=_require_timestamp("response", payload),
            body=body,
        )

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


# =============================================================================
# Scenario Input
# =============================================================================


@dataclass(frozen=True)
class Selectors:
    """CSS selectors for the chat input, send button and assistant message."""

    input: str
    send: str
    assistant: str


@dataclass(frozen=True)
class Scenario:
    """
    One UI implementation under test.

    Attributes:
        name: Scenario name, used as the artifact file prefix
        base_url: Page to load before trials
        fetch_regex: Pattern matching the chat exchange URL
        selectors: UI selectors used to drive the prompt
        setup: Selectors clicked (when present) after every load/reload
    """

    name: str
    base_url: str
    fetch_regex: str
    selectors: Selectors
    setup: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Scenario:
        """
        Build a Scenario from a targets file entry.

        Accepts both snake_case and the camelCase keys used by targets.json
        ("baseUrl", "fetchRegex").

        Raises:
            ConfigurationError: If required keys are missing or invalid
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Scenario entry must be a mapping, got {type(data).__name__}")

        name = data.get("name")
        base_url = data.get("base_url", data.get("baseUrl"))
        fetch_regex = data.get("fetch_regex", data.get("fetchRegex"))
        selectors = data.get("selectors") or {}

        missing = [
            key
            for key, value in (("name", name), ("baseUrl", base_url), ("fetchRegex", fetch_regex))
            if not value
        ]
        missing += [f"selectors.{key}" for key in ("input", "send", "assistant") if not selectors.get(key)]
        if missing:
            raise ConfigurationError(
                f"Scenario {name or '<unnamed>'} is missing: {', '.join(missing)}"
            )

        # Names become artifact file prefixes
        if not re.fullmatch(r"[\w.-]+", str(name)):
            raise ConfigurationError(f"Scenario name has unsupported characters: {name}")

        try:
            re.compile(fetch_regex)
        except re.error as e:
            raise ConfigurationError(f"Scenario {name}: invalid fetchRegex {fetch_regex!r}: {e}") from e

        setup = data.get("setup") or ()
        if isinstance(setup, str):
            setup = (setup,)

        return cls(
            name=str(name),
            base_url=str(base_url),
            fetch_regex=str(fetch_regex),
            selectors=Selectors(
                input=selectors["input"],
                send=selectors["send"],
                assistant=selectors["assistant"],
            ),
            setup=tuple(setup),
        )
