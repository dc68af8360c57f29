"""
Sanity limits for summarized trials.

Each trial class may declare limits per metric field, e.g.:

    limits:
      ttfb_ms: {max: 10000}
      bytes_total: {min: 50}

Limits are only evaluated when the summary observed a first byte at all
(ttfb_ms > 0); a run that captured nothing is reported through the -1
sentinel, not as a limit failure. Failures are logged, never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ui_latency_bench.types import SummaryStatistic

logger = logging.getLogger(__name__)


def check_limits(
    summary: SummaryStatistic,
    limits: Mapping[str, Mapping[str, float]],
    label: str = "",
) -> dict[str, Any]:
    """
    Check summary means against configured limits.

    Args:
        summary: Summary to check
        limits: Field name -> {"max": value} and/or {"min": value}
        label: Prefix for log lines (e.g. "chat-ui P2")

    Returns:
        Dict with overall "pass", "evaluated" flag and per-field "checks"
    """
    ttfb = summary["ttfb_ms"].mean
    if ttfb <= 0:
        logger.info(f"{label} limits skipped: no first byte observed")
        return {"pass": True, "evaluated": False, "checks": {}}

    checks: dict[str, dict[str, Any]] = {}

    for field_name, bounds in limits.items():
        value = summary[field_name].mean

        if "max" in bounds:
            threshold = bounds["max"]
            checks[f"{field_name}_max"] = {
                "value": value,
                "threshold": threshold,
                "pass": value < threshold,
            }
        if "min" in bounds:
            threshold = bounds["min"]
            checks[f"{field_name}_min"] = {
                "value": value,
                "threshold": threshold,
                "pass": value > threshold,
            }

    all_pass = all(check["pass"] for check in checks.values())

    for name, check in checks.items():
        if not check["pass"]:
            logger.warning(
                f"{label} limit {name} ❌ FAIL (value={check['value']}, "
                f"threshold={check['threshold']})"
            )

    logger.info(f"{label} limits: {'✅ PASS' if all_pass else '❌ FAIL'}")

    return {"pass": all_pass, "evaluated": True, "checks": checks}
