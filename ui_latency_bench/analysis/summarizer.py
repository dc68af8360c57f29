"""
Trial summarization.

Reduces a TrialSet (ordered MetricRecords for one scenario and trial class)
into per-field mean and median.

Rules:
- Only strictly positive values count; -1 (not observed) and 0 are dropped
- A field with no positive values reports -1 for both mean and median
- Even counts take the mean of the two central values as median
- Results round half up (112.5 -> 113)

Usage:
    from ui_latency_bench.analysis.summarizer import summarize

    summary = summarize(trial_set)
    summary["ttfb_ms"].median
"""

from __future__ import annotations

import statistics
from typing import Iterable, Sequence

from ui_latency_bench.types import (
    METRIC_FIELDS,
    UNOBSERVED,
    FieldSummary,
    MetricRecord,
    SummaryStatistic,
    round_half_up,
)


def summarize_values(values: Iterable[float]) -> FieldSummary:
    """
    Summarize one field's values.

    Args:
        values: Raw per-trial values, sentinels included

    Returns:
        FieldSummary with rounded mean and median, or -1/-1 if no value is
        strictly positive
    """
    observed = [v for v in values if v > 0]
    if not observed:
        return FieldSummary(mean=UNOBSERVED, median=UNOBSERVED)

    return FieldSummary(
        mean=round_half_up(statistics.fmean(observed)),
        median=round_half_up(statistics.median(observed)),
    )


def summarize(trials: Sequence[MetricRecord]) -> SummaryStatistic:
    """Reduce a TrialSet to a SummaryStatistic, each field independently."""
    return SummaryStatistic(
        fields={
            name: summarize_values(getattr(record, name) for record in trials)
            for name in METRIC_FIELDS
        }
    )
