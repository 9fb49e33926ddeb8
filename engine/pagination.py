"""
Cursor pagination over correlations ordered by start time.

A page is built in chunks. Each chunk first selects the next correlation ids
strictly after the current position, then fetches full summaries for just
those ids and applies the status filter. The position only moves forward, so
no correlation is ranked twice and paging has no depth limit.

Correlations with a START come first, newest earliest START first; those
without one follow in correlation id order. The cursor pins the time window
anchor so every page of one scan sees the same closed range.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

from api.requests import CorrelationFilter
from api.responses import CorrelationSummary
from config import settings
from datasources.base import RawAggregationResult
from engine.aggregation import summarize
from engine.cursor import Cursor, decode_cursor, fingerprint
from engine.errors import InvalidFilterError
from engine.query_builder import (
    STARTED_IDS_PATH,
    UNSTARTED_IDS_PATH,
    StoreQuery,
    build_correlation_query,
    build_started_ids_query,
    build_unstarted_ids_query,
)
from engine.status import filter_by_status

log = logging.getLogger(__name__)

SearchFn = Callable[[StoreQuery], Awaitable[RawAggregationResult]]


@dataclass
class Page:
    items: List[CorrelationSummary]
    next_cursor: Optional[Cursor] = None
    total: Optional[int] = None
    partial: bool = False
    warnings: List[str] = field(default_factory=list)
    round_trips: int = 0


@dataclass
class _Chunk:
    ids: List[str]
    last: Optional[Tuple[Optional[int], str]]
    exhausted: bool


def resolve_cursor(spec: CorrelationFilter) -> Optional[Cursor]:
    if not spec.last_key:
        return None
    cursor = decode_cursor(spec.last_key)
    if cursor.fingerprint != fingerprint(spec.canonical()):
        raise InvalidFilterError("lastKey was issued for different filters")
    return cursor


class PaginationController:
    def __init__(
        self,
        search: SearchFn,
        *,
        status_pushdown: bool = False,
        max_window: int | None = None,
        index: str | None = None,
    ) -> None:
        self._search = search
        self.status_pushdown = status_pushdown
        self.max_window = max_window or settings.max_bucket_window
        self.index = index

    def _cursor(self, start_ms: Optional[int], correlation_id: str, anchor_ms: int, spec: CorrelationFilter) -> Cursor:
        return Cursor(
            start_ms=start_ms,
            correlation_id=correlation_id,
            anchor_ms=anchor_ms,
            fingerprint=fingerprint(spec.canonical()),
        )

    async def _run(self, query: StoreQuery, page: Page) -> RawAggregationResult:
        raw = await self._search(query)
        page.round_trips += 1
        page.partial = page.partial or raw.partial
        if page.total is None:
            total = raw.metric("total_correlations")
            page.total = int(total) if total is not None else None
        return raw

    async def _started_chunk(self, spec, anchor_ms, after, size, page) -> _Chunk:
        query = build_started_ids_query(spec, anchor_ms, size, after=after, index=self.index)
        raw = await self._run(query, page)
        buckets = raw.buckets(STARTED_IDS_PATH)
        if not buckets:
            return _Chunk(ids=[], last=None, exhausted=True)
        tail = buckets[-1]
        return _Chunk(
            ids=[str(b["key"]) for b in buckets],
            last=(int(tail["first_start"]["value"]), str(tail["key"])),
            exhausted=raw.other_doc_count(STARTED_IDS_PATH) == 0,
        )

    async def _unstarted_chunk(self, spec, anchor_ms, after, size, page) -> _Chunk:
        query = build_unstarted_ids_query(spec, anchor_ms, size, after=after, index=self.index)
        raw = await self._run(query, page)
        buckets = raw.buckets(UNSTARTED_IDS_PATH)
        if not buckets:
            return _Chunk(ids=[], last=None, exhausted=True)
        # ids with a START were already served by the started segment
        return _Chunk(
            ids=[str(b["key"]) for b in buckets if not (b.get("start_event") or {}).get("doc_count")],
            last=(None, str(buckets[-1]["key"])),
            exhausted=raw.other_doc_count(UNSTARTED_IDS_PATH) == 0,
        )

    async def _summaries(self, spec, anchor_ms, ids, page) -> List[CorrelationSummary]:
        query = build_correlation_query(
            spec,
            anchor_ms,
            ids,
            status_pushdown=self.status_pushdown,
            index=self.index,
        )
        raw = await self._run(query, page)
        # the in-memory filter is canonical; pushdown only trims the payload
        return filter_by_status(summarize(raw), spec.status)

    async def fetch_page(self, spec: CorrelationFilter, now_ms: int) -> Page:
        cursor = resolve_cursor(spec)
        anchor_ms = cursor.anchor_ms if cursor else now_ms
        after = cursor
        started = cursor is None or cursor.in_started_segment
        size = min(spec.page_size + 1, self.max_window)

        page = Page(items=[])
        matching: List[CorrelationSummary] = []
        while len(matching) <= spec.page_size:
            fetch = self._started_chunk if started else self._unstarted_chunk
            chunk = await fetch(spec, anchor_ms, after, size, page)
            if chunk.ids:
                matching.extend(await self._summaries(spec, anchor_ms, chunk.ids, page))

            if chunk.exhausted:
                if not started:
                    break
                log.debug("Started correlations exhausted, scanning those without a START")
                started, after = False, None
            else:
                after = self._cursor(chunk.last[0], chunk.last[1], anchor_ms, spec)
            size = min(size * 2, self.max_window)
            log.debug("Next correlation chunk of %d (have %d of %d)", size, len(matching), spec.page_size)

        page.items = matching[:spec.page_size]
        if len(matching) > spec.page_size:
            tail = page.items[-1]
            page.next_cursor = self._cursor(tail.start_ms, tail.correlation_id, anchor_ms, spec)

        if page.partial:
            page.warnings.append("Store returned partial results (timeout or shard failures)")
        return page
