"""
Per-query performance metrics kept in a bounded ring buffer.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

import numpy as np

from api.responses import QueryMetricsSummary, ShardAverages
from config import METRICS_MIRROR_TTL
from store import keys
from store.client import redis_lrange, redis_rpush

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryMetrics:
    kind: str
    took_ms: int
    duration_ms: float
    timestamp: float
    total_shards: int = 0
    successful_shards: int = 0
    failed_shards: int = 0
    skipped_shards: int = 0
    params: Dict[str, Any] = field(default_factory=dict)
    cache_hit: bool = False
    result_count: int = 0
    partial: bool = False
    # StoreError kind when the query failed
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "QueryMetrics":
        return cls(
            kind=str(raw.get("kind", "")),
            took_ms=int(raw.get("took_ms", 0)),
            duration_ms=float(raw.get("duration_ms", 0.0)),
            timestamp=float(raw.get("timestamp", 0.0)),
            total_shards=int(raw.get("total_shards", 0)),
            successful_shards=int(raw.get("successful_shards", 0)),
            failed_shards=int(raw.get("failed_shards", 0)),
            skipped_shards=int(raw.get("skipped_shards", 0)),
            params=dict(raw.get("params") or {}),
            cache_hit=bool(raw.get("cache_hit", False)),
            result_count=int(raw.get("result_count", 0)),
            partial=bool(raw.get("partial", False)),
            error=raw.get("error") or None,
        )


class QueryMetricsRecorder:
    def __init__(
        self,
        capacity: int = 1000,
        clock: Callable[[], float] = time.time,
        mirror_key: Optional[str] = None,
        mirror_max_items: Optional[int] = None,
    ) -> None:
        self.capacity = capacity
        self._clock = clock
        self._entries: Deque[QueryMetrics] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self.mirror_key = mirror_key
        self.mirror_max_items = mirror_max_items or capacity

    @classmethod
    def for_index(cls, index: str, capacity: int, mirror: bool = True, **kwargs: Any) -> "QueryMetricsRecorder":
        return cls(capacity=capacity, mirror_key=keys.query_metrics(index) if mirror else None, **kwargs)

    def now(self) -> float:
        return self._clock()

    def record(self, metrics: QueryMetrics) -> None:
        with self._lock:
            self._entries.append(metrics)

    async def record_async(self, metrics: QueryMetrics) -> None:
        self.record(metrics)
        if not self.mirror_key:
            return
        try:
            await redis_rpush(
                self.mirror_key,
                json.dumps(metrics.to_dict(), default=str),
                ttl=METRICS_MIRROR_TTL,
                max_len=self.mirror_max_items,
            )
        except Exception as exc:
            log.debug("Query metrics mirror failed: %s", exc)

    async def restore(self) -> int:
        """Seed the ring buffer from the mirrored list; returns entries loaded."""
        if not self.mirror_key:
            return 0
        try:
            raw_items = await redis_lrange(self.mirror_key)
        except Exception as exc:
            log.debug("Query metrics restore failed: %s", exc)
            return 0
        loaded: List[QueryMetrics] = []
        for raw in raw_items[-self.capacity:]:
            try:
                loaded.append(QueryMetrics.from_dict(json.loads(raw)))
            except (ValueError, TypeError, AttributeError) as exc:
                log.debug("Skipping unreadable metrics entry: %s", exc)
        with self._lock:
            for item in loaded:
                self._entries.append(item)
        return len(loaded)

    def recent(self, window_seconds: float) -> List[QueryMetrics]:
        cutoff = self._clock() - window_seconds
        with self._lock:
            return [m for m in self._entries if m.timestamp > cutoff]

    def summary(self, window_seconds: int, slowest: int = 5) -> QueryMetricsSummary:
        rows = self.recent(window_seconds)
        if not rows:
            return QueryMetricsSummary(window_seconds=window_seconds)

        took = np.array([m.took_ms for m in rows], dtype=float)
        duration = np.array([m.duration_ms for m in rows], dtype=float)
        total_shards = np.array([m.total_shards for m in rows], dtype=float)
        failed_shards = np.array([m.failed_shards for m in rows], dtype=float)
        skipped_shards = np.array([m.skipped_shards for m in rows], dtype=float)

        ranked = sorted(rows, key=lambda m: m.took_ms, reverse=True)[:max(0, slowest)]
        return QueryMetricsSummary(
            window_seconds=window_seconds,
            total_queries=len(rows),
            average_query_time=round(float(took.mean()), 3),
            average_duration_ms=round(float(duration.mean()), 3),
            p95_query_time=round(float(np.percentile(took, 95)), 3),
            cache_hit_rate=round(sum(1 for m in rows if m.cache_hit) / len(rows), 4),
            partial_rate=round(sum(1 for m in rows if m.partial) / len(rows), 4),
            error_rate=round(sum(1 for m in rows if m.error) / len(rows), 4),
            shard_stats=ShardAverages(
                avg_total_shards=round(float(total_shards.mean()), 3),
                avg_failed_shards=round(float(failed_shards.mean()), 3),
                avg_skipped_shards=round(float(skipped_shards.mean()), 3),
            ),
            slowest_queries=[m.to_dict() for m in ranked],
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
