"""
Correlation service: runs filter -> store query -> status derivation -> paging
for one request and records query metrics along the way.

One instance is created at startup and shared by all requests; the count cache
and metrics recorder it holds are the only state that outlives a request.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from api.requests import CorrelationFilter
from api.responses import (
    ClusterInfo,
    CorrelationPage,
    EventCount,
    FilterOptions,
    HealthStatus,
    PerformanceReport,
    QueryPreview,
)
from config import settings
from datasources.base import RawAggregationResult
from datasources.exceptions import StoreError
from engine.aggregation import facet_options
from engine.cursor import encode_cursor
from engine.pagination import PaginationController
from engine.query_builder import (
    KIND_CORRELATIONS,
    StoreQuery,
    build_correlation_query,
    build_count_query,
    build_facets_query,
    build_started_ids_query,
)
from store import keys
from store.cache import CountCache
from store.metrics import QueryMetrics, QueryMetricsRecorder

log = logging.getLogger(__name__)


class CorrelationService:
    def __init__(
        self,
        provider: Any,
        count_cache: CountCache,
        metrics: QueryMetricsRecorder,
        *,
        status_pushdown: bool = False,
        max_window: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = provider
        self.count_cache = count_cache
        self.metrics = metrics
        self.status_pushdown = status_pushdown
        self.max_window = max_window
        self._clock = clock

    @property
    def index(self) -> str:
        return self.provider.index

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _record(self, metrics: QueryMetrics) -> None:
        try:
            await self.metrics.record_async(metrics)
        except Exception as exc:
            log.warning("Failed to record query metrics: %s", exc)

    def _query_metrics(self, query: StoreQuery, result: Any, duration_ms: float, error: Optional[str]) -> QueryMetrics:
        base = dict(
            kind=query.kind,
            duration_ms=duration_ms,
            timestamp=self.metrics.now(),
            params=query.spec.dimensions(),
            error=error,
        )
        if isinstance(result, RawAggregationResult):
            return QueryMetrics(
                took_ms=result.took_ms,
                total_shards=result.shards.total,
                successful_shards=result.shards.successful,
                failed_shards=result.shards.failed,
                skipped_shards=result.shards.skipped,
                result_count=len(result.buckets()) if query.kind == KIND_CORRELATIONS else 0,
                partial=result.partial,
                **base,
            )
        if isinstance(result, int):
            return QueryMetrics(took_ms=int(duration_ms), result_count=result, **base)
        return QueryMetrics(took_ms=int(duration_ms), **base)

    async def _timed(self, query: StoreQuery, call: Callable[[StoreQuery], Awaitable[Any]]) -> Any:
        started = time.perf_counter()
        result: Any = None
        error: Optional[str] = None
        try:
            result = await call(query)
            return result
        except Exception as exc:
            error = getattr(exc, "kind", type(exc).__name__)
            raise
        finally:
            duration_ms = round((time.perf_counter() - started) * 1000.0, 3)
            await self._record(self._query_metrics(query, result, duration_ms, error))

    async def _search(self, query: StoreQuery) -> RawAggregationResult:
        return await self._timed(query, self.provider.search)

    async def list_correlations(self, spec: CorrelationFilter) -> CorrelationPage:
        controller = PaginationController(
            self._search,
            status_pushdown=self.status_pushdown,
            max_window=self.max_window,
            index=self.index,
        )
        page = await controller.fetch_page(spec, now_ms=self._now_ms())
        log.info(
            "Correlations: %d returned (total=%s, round_trips=%d, partial=%s, more=%s)",
            len(page.items), page.total, page.round_trips, page.partial, page.next_cursor is not None,
        )
        return CorrelationPage(
            data=page.items,
            total=page.total,
            next_key=encode_cursor(page.next_cursor) if page.next_cursor else None,
            has_more=page.next_cursor is not None,
            partial=page.partial,
            warnings=page.warnings,
        )

    def _count_key(self, spec: CorrelationFilter) -> str:
        dims = spec.dimensions()
        # document counts do not depend on the derived status
        dims.pop("status", None)
        return keys.count(self.index, json.dumps(dims, sort_keys=True, separators=(",", ":")))

    def _cache_get(self, key: str) -> Optional[int]:
        try:
            return self.count_cache.get(key)
        except Exception as exc:
            log.warning("Count cache read failed: %s", exc)
            return None

    def _cache_set(self, key: str, value: int) -> None:
        try:
            self.count_cache.set(key, value)
        except Exception as exc:
            log.warning("Count cache write failed: %s", exc)

    async def count_events(self, spec: CorrelationFilter) -> EventCount:
        key = self._count_key(spec)
        cached = self._cache_get(key)
        if cached is not None:
            await self._record(QueryMetrics(
                kind="count",
                took_ms=0,
                duration_ms=0.0,
                timestamp=self.metrics.now(),
                params=spec.dimensions(),
                cache_hit=True,
                result_count=cached,
            ))
            return EventCount(count=cached, time_range=spec.time_range, cached=True)

        query = build_count_query(spec, now_ms=self._now_ms(), index=self.index)
        count = await self._timed(query, self.provider.count)
        self._cache_set(key, count)
        return EventCount(count=count, time_range=spec.time_range, cached=False)

    async def filter_options(self, spec: CorrelationFilter) -> FilterOptions:
        raw = await self._search(build_facets_query(spec, now_ms=self._now_ms(), index=self.index))
        return facet_options(raw)

    def preview(self, spec: CorrelationFilter) -> QueryPreview:
        now_ms = self._now_ms()
        query = build_started_ids_query(
            spec,
            now_ms=now_ms,
            size=min(spec.page_size + 1, self.max_window or settings.max_bucket_window),
            index=self.index,
        )
        # summaries are fetched per chunk of selected ids; shown here without ids
        summaries = build_correlation_query(
            spec,
            now_ms=now_ms,
            ids=[],
            status_pushdown=self.status_pushdown,
            index=self.index,
        )
        filters = query.body["query"]["bool"]["filter"]
        return QueryPreview(
            index=query.index,
            params=query.params,
            body=query.body,
            summary_body=summaries.body,
            filters_applied=len(filters) - 1,
        )

    async def health(self) -> HealthStatus:
        now = datetime.now(timezone.utc)
        try:
            health = await self.provider.cluster_health()
        except StoreError as exc:
            log.error("Health check failed (%s): %s", exc.kind, exc)
            return HealthStatus(status="red", available=False, error=exc.public_message, timestamp=now)

        index_exists: Optional[bool] = None
        try:
            index_exists = await self.provider.index_exists()
        except StoreError as exc:
            log.warning("Index check failed (%s): %s", exc.kind, exc)
        if index_exists is False:
            log.error("Index %s does not exist", self.index)

        return HealthStatus(
            status=str(health.get("status", "unknown")),
            available=True,
            cluster_info=ClusterInfo(
                cluster_name=health.get("cluster_name"),
                number_of_nodes=int(health.get("number_of_nodes", 0) or 0),
                number_of_data_nodes=int(health.get("number_of_data_nodes", 0) or 0),
                active_shards=int(health.get("active_shards", 0) or 0),
                active_primary_shards=int(health.get("active_primary_shards", 0) or 0),
            ),
            index_exists=index_exists,
            timestamp=now,
        )

    async def performance(self, window_seconds: int, slowest: int = 5) -> PerformanceReport:
        summary = self.metrics.summary(window_seconds, slowest=slowest)
        cluster: Optional[Dict[str, Any]] = None
        try:
            stats = await self.provider.cluster_stats()
            nodes = stats.get("nodes") or {}
            cluster = {
                "status": stats.get("status"),
                "nodes": (nodes.get("count") or {}).get("total"),
                "indices": (stats.get("indices") or {}).get("count"),
                "memory": (nodes.get("os") or {}).get("mem"),
            }
        except StoreError as exc:
            log.warning("Cluster stats unavailable (%s): %s", exc.kind, exc)
        return PerformanceReport(query_metrics=summary, cluster_health=cluster)
