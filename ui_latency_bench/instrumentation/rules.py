"""
Relevance rules for network exchanges.

A conversational UI issues many background calls (info, health checks,
history, search) alongside the chat exchange itself. Only the chat exchange
is measured:

- Excluded: URL contains /info, /health, /search, /history, or ends in /api/
- Relevant: any non-GET method unless excluded; a GET only when the URL
  contains /stream or /runs
"""

from __future__ import annotations

import re

EXCLUDED_SEGMENTS: tuple[str, ...] = ("/info", "/health", "/search", "/history")
EXCLUDED_SUFFIX = "/api/"
STREAMING_GET_SEGMENTS: tuple[str, ...] = ("/stream", "/runs")


def is_excluded(url: str) -> bool:
    """True for URLs that are never relevant, whatever the method."""
    return any(segment in url for segment in EXCLUDED_SEGMENTS) or url.endswith(EXCLUDED_SUFFIX)


def is_relevant(url: str, method: str, pattern: re.Pattern[str] | None = None) -> bool:
    """
    Decide whether an exchange is the one being measured.

    Args:
        url: Request URL
        method: HTTP method (any case)
        pattern: Optional scenario fetch regex the URL must also match

    Returns:
        True if the exchange should drive the trial's metrics
    """
    if pattern is not None and not pattern.search(url):
        return False
    if is_excluded(url):
        return False
    if method.upper() != "GET":
        return True
    return any(segment in url for segment in STREAMING_GET_SEGMENTS)
