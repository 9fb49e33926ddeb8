"""
Tests for the query metrics ring buffer and its redis mirror.
"""

from __future__ import annotations

import pytest

from store import keys
from store.client import _fallback_lists
from store.metrics import QueryMetrics, QueryMetricsRecorder


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _m(took, ts, **kw):
    return QueryMetrics(kind="correlations", took_ms=took, duration_ms=float(took) + 1, timestamp=ts, **kw)


def test_ring_buffer_is_bounded():
    rec = QueryMetricsRecorder(capacity=3, clock=Clock())
    for i in range(5):
        rec.record(_m(i, 999.0))
    assert len(rec) == 3
    assert [m.took_ms for m in rec.recent(60)] == [2, 3, 4]


def test_summary_over_window():
    clock = Clock(1000.0)
    rec = QueryMetricsRecorder(capacity=100, clock=clock)
    rec.record(_m(500, 100.0))
    for took in (10, 20, 30, 40):
        rec.record(_m(took, 990.0, total_shards=2, failed_shards=1 if took == 40 else 0, partial=took == 40))
    rec.record(_m(0, 995.0, cache_hit=True))

    summary = rec.summary(60, slowest=2)
    assert summary.total_queries == 5
    assert summary.average_query_time == 20.0
    assert summary.cache_hit_rate == 0.2
    assert summary.partial_rate == 0.2
    assert [q["took_ms"] for q in summary.slowest_queries] == [40, 30]
    assert summary.shard_stats.avg_failed_shards == 0.2
    assert summary.p95_query_time > 30


def test_empty_summary():
    summary = QueryMetricsRecorder(clock=Clock()).summary(3600)
    assert summary.total_queries == 0
    assert summary.model_dump(by_alias=True)["averageQueryTime"] == 0.0


@pytest.mark.asyncio
async def test_mirror_and_restore_through_fallback():
    rec = QueryMetricsRecorder.for_index("logs-test", capacity=10, clock=Clock())
    await rec.record_async(_m(7, 999.0, params={"time_range": "15m"}))
    assert len(_fallback_lists[keys.query_metrics("logs-test")]) == 1

    restored = QueryMetricsRecorder.for_index("logs-test", capacity=10, clock=Clock())
    assert await restored.restore() == 1
    assert restored.recent(60)[0].params == {"time_range": "15m"}


@pytest.mark.asyncio
async def test_restore_skips_unreadable_entries():
    _fallback_lists[keys.query_metrics("idx")] = ["not json", '{"kind": "count", "took_ms": 2}']
    rec = QueryMetricsRecorder.for_index("idx", capacity=10, clock=Clock())
    assert await rec.restore() == 1
