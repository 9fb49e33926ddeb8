"""
Reduction of raw correlation buckets into summaries.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from api.responses import ApplicationCount, CorrelationSummary, FacetBucket, FilterOptions
from datasources.base import RawAggregationResult
from engine.cursor import sort_key
from engine.query_builder import FACET_FIELDS
from engine.status import END_BEFORE_START, derive_status, elapsed_ms, end_precedes_start

log = logging.getLogger(__name__)


def _to_ms(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return int(numeric)


def _to_datetime(ms: Optional[int]) -> Optional[datetime]:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


def _doc_count(agg: Any) -> int:
    if not isinstance(agg, dict):
        return 0
    return int(agg.get("doc_count", 0) or 0)


def _top_key(agg: Any) -> Optional[str]:
    buckets = (agg or {}).get("buckets") or []
    if not buckets:
        return None
    return str(buckets[0].get("key"))


def summarize_bucket(bucket: Dict[str, Any]) -> CorrelationSummary:
    start_event = bucket.get("start_event") or {}
    end_event = bucket.get("end_event") or {}
    has_start = _doc_count(start_event)
    has_end = _doc_count(end_event)
    has_exception = _doc_count(bucket.get("has_exception"))

    start_ms = _to_ms((start_event.get("start_time") or {}).get("value")) if has_start else None
    end_ms = _to_ms((end_event.get("end_time") or {}).get("value")) if has_end else None

    applications = [
        ApplicationCount(name=str(b.get("key")), count=int(b.get("doc_count", 0) or 0))
        for b in (bucket.get("applications") or {}).get("buckets") or []
    ]
    app_count_raw = (bucket.get("app_count") or {}).get("value")
    app_count = int(app_count_raw) if app_count_raw is not None else len(applications)

    status = derive_status(has_start, has_end, has_exception, app_count)
    flags: List[str] = []
    if end_precedes_start(start_ms, end_ms):
        flags.append(END_BEFORE_START)
        log.debug("Correlation %s ends before it starts (%s < %s)", bucket.get("key"), end_ms, start_ms)

    return CorrelationSummary(
        correlation_id=str(bucket.get("key")),
        applications=applications,
        app_count=app_count,
        interface_id=_top_key(bucket.get("interface_id")),
        interface_domain=_top_key(bucket.get("interface_domain")),
        organization=_top_key(bucket.get("interface_org")),
        start_time=_to_datetime(start_ms),
        end_time=_to_datetime(end_ms),
        elapsed_ms=elapsed_ms(start_ms, end_ms, has_start, has_end),
        status=status,
        status_code=status.code,
        has_exception=has_exception > 0,
        event_count=int(bucket.get("doc_count", 0) or 0),
        data_quality=flags,
        start_ms=start_ms,
        end_ms=end_ms,
    )


def order_summaries(summaries: Iterable[CorrelationSummary]) -> List[CorrelationSummary]:
    return sorted(summaries, key=lambda s: sort_key(s.start_ms, s.correlation_id))


def summarize(result: RawAggregationResult) -> List[CorrelationSummary]:
    return order_summaries(summarize_bucket(b) for b in result.buckets())


def facet_options(result: RawAggregationResult) -> FilterOptions:
    values = {}
    for name in FACET_FIELDS:
        values[name] = [
            FacetBucket(key=str(b.get("key")), doc_count=int(b.get("doc_count", 0) or 0))
            for b in result.buckets(name)
        ]
    return FilterOptions(**values)
