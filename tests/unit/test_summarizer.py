"""
Unit tests for trial summarization.

Test Coverage:
- Sentinel (-1) and zero values excluded from mean and median
- Fields with no positive value report -1/-1
- Odd and even counts for the median
- Round-half-up convention for .5 results
- Flat artifact serialization
"""

import pytest

from ui_latency_bench.analysis.summarizer import summarize, summarize_values
from ui_latency_bench.types import METRIC_FIELDS, FieldSummary, MetricRecord


def records(**columns) -> list[MetricRecord]:
    """Build a TrialSet from per-field value lists of equal length."""
    length = len(next(iter(columns.values())))
    return [MetricRecord(**{name: values[i] for name, values in columns.items()}) for i in range(length)]


@pytest.mark.P0
class TestSummarizeValues:
    """Per-field reduction rules."""

    def test_sentinel_excluded(self):
        """GIVEN {10, -1, 20} WHEN summarized THEN mean = median = 15."""
        assert summarize_values([10, -1, 20]) == FieldSummary(mean=15, median=15)

    def test_odd_count(self):
        """GIVEN 100, 150, 125 WHEN summarized THEN mean = median = 125."""
        assert summarize_values([100, 150, 125]) == FieldSummary(mean=125, median=125)

    def test_half_rounds_up(self):
        """
        GIVEN 100, -1, 125 (mean and median of {100, 125} are 112.5)
        WHEN summarized
        THEN both round half up to 113
        """
        assert summarize_values([100, -1, 125]) == FieldSummary(mean=113, median=113)

    def test_even_count_median_averages_central_values(self):
        assert summarize_values([10, 40, 20, 30]) == FieldSummary(mean=25, median=25)

    def test_zero_excluded(self):
        assert summarize_values([0, 50, 70]) == FieldSummary(mean=60, median=60)

    def test_no_positive_values(self):
        assert summarize_values([-1, -1, 0]) == FieldSummary(mean=-1, median=-1)

    def test_empty(self):
        assert summarize_values([]) == FieldSummary(mean=-1, median=-1)

    def test_mean_and_median_differ(self):
        """Skewed trials: mean pulled up by the outlier, median is not."""
        summary = summarize_values([100, 110, 400])
        assert summary.mean == 203
        assert summary.median == 110


@pytest.mark.P0
class TestSummarize:
    """TrialSet -> SummaryStatistic."""

    def test_fields_are_independent(self):
        trials = records(
            ttfb_ms=[100, 150, 125],
            ttl_ms=[-1, -1, -1],
            bytes_total=[2048, -1, 1024],
        )

        summary = summarize(trials)

        assert summary["ttfb_ms"] == FieldSummary(125, 125)
        assert summary["ttl_ms"] == FieldSummary(-1, -1)
        assert summary["bytes_total"] == FieldSummary(1536, 1536)
        assert summary["render_ms"] == FieldSummary(-1, -1)

    def test_empty_trial_set(self):
        summary = summarize([])
        assert all(summary[name] == FieldSummary(-1, -1) for name in METRIC_FIELDS)

    def test_serializes_flat_with_median_keys(self):
        summary = summarize(records(ttfb_ms=[100, -1, 125]))

        flat = summary.to_dict()

        assert flat["ttfb_ms"] == 113
        assert flat["ttfb_ms_median"] == 113
        assert flat["ttft_ms"] == -1
        assert set(flat) == {key for name in METRIC_FIELDS for key in (name, f"{name}_median")}

    def test_input_not_mutated(self):
        trials = records(ttfb_ms=[100, -1, 125])
        before = [r.to_dict() for r in trials]

        summarize(trials)
        summarize(trials)

        assert [r.to_dict() for r in trials] == before
