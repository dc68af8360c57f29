"""
Unit tests for the per-trial instrumentation context.
"""

import asyncio

import pytest

from ui_latency_bench.instrumentation.context import TrialContext


@pytest.mark.P0
class TestSamples:
    def test_record_prefixes_label_and_stamps_clock(self, context, clock):
        clock.advance(250)

        sample = context.record("ttfb_ms", 42.0, {"url": "u"})

        assert sample.metric == "chat:ttfb_ms"
        assert sample.ts == clock.now
        assert sample.meta == {"url": "u"}

    def test_latest_sample_wins(self, context):
        """Interleaved exchanges: the most recent sample of each name is used."""
        context.record("ttfb_ms", 100)
        context.record("ttft_ms", 150)
        context.record("ttfb_ms", 80)

        assert context.latest_value("ttfb_ms") == 80
        assert context.latest_value("ttft_ms") == 150
        assert context.latest_value("ttl_ms") is None

    def test_to_record_missing_fields_are_sentinel(self, context):
        context.matched_url = "http://ui.test/api/chat"
        context.record("ttfb_ms", 99.5)
        context.record("bytes_total", 512)

        record = context.to_record()

        assert record.ttfb_ms == 100
        assert record.bytes_total == 512
        assert record.ttl_ms == -1
        assert record.render_ms == -1
        assert record.url == "http://ui.test/api/chat"

    @pytest.mark.parametrize("field,settles", [("render_ms", True), ("error", True), ("ttl_ms", False)])
    def test_terminal_samples_settle(self, context, field, settles):
        context.record(field, 1)
        assert context.settled.is_set() is settles

    def test_contexts_do_not_share_buffers(self, clock):
        first = TrialContext(clock=clock)
        second = TrialContext(clock=clock)

        first.record("ttfb_ms", 10)

        assert second.samples == []
        assert second.request_started_at is None


@pytest.mark.P1
class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_cancels_tasks_and_clears(self, context):
        started = asyncio.Event()

        async def forever():
            started.set()
            await asyncio.sleep(3600)

        task = context.spawn(forever())
        await started.wait()
        context.record("ttfb_ms", 1)

        await context.close()

        assert task.cancelled()
        assert context.samples == []
        assert context.closed
