"""
Translation of correlation filters into the event store's query DSL.

Everything here is pure: the caller supplies ``now_ms`` so the same filter
and clock always yield the same request body.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from api.requests import CorrelationFilter
from config import (
    FIELD_APPLICATION,
    FIELD_CORRELATION_ID,
    FIELD_DOMAIN,
    FIELD_ENVIRONMENT,
    FIELD_INTERFACE_ID,
    FIELD_ORGANIZATION,
    FIELD_TIMESTAMP,
    FIELD_TRACE_POINT,
    SEARCH_TUNING_DEFAULT,
    SEARCH_TUNING_WIDE,
    WIDE_RANGE_SECONDS,
    settings,
)
from engine.cursor import Cursor
from engine.enums import TracePoint
from engine.status import status_script, status_selector_script
from engine.timerange import window_ms

SEARCH_FIELDS = (FIELD_CORRELATION_ID, FIELD_APPLICATION, FIELD_INTERFACE_ID)

KIND_CORRELATIONS = "correlations"
KIND_STARTED_IDS = "started_ids"
KIND_UNSTARTED_IDS = "unstarted_ids"
KIND_COUNT = "count"
KIND_FACETS = "facets"

# aggregation paths of the id selection queries
STARTED_IDS_PATH = "started>ids"
UNSTARTED_IDS_PATH = "unstarted>ids"


@dataclass(frozen=True)
class StoreQuery:
    index: str
    body: Dict[str, Any]
    spec: CorrelationFilter
    now_ms: int
    kind: str = KIND_CORRELATIONS
    params: Dict[str, Any] = field(default_factory=dict)
    size: int = 0
    after: Optional[Cursor] = None
    ids: Tuple[str, ...] = ()
    status_pushdown: bool = False


def _escape_wildcard(value: str) -> str:
    return value.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def _wildcard(field_name: str, value: str) -> Dict[str, Any]:
    return {
        "wildcard": {
            field_name: {
                "value": f"*{_escape_wildcard(value)}*",
                "case_insensitive": True,
            }
        }
    }


def _time_range_filter(spec: CorrelationFilter, now_ms: int) -> Dict[str, Any]:
    start_ms, end_ms = window_ms(spec.time_range, now_ms)
    return {"range": {FIELD_TIMESTAMP: {"gte": start_ms, "lte": end_ms, "format": "epoch_millis"}}}


def build_filters(spec: CorrelationFilter, now_ms: int) -> List[Dict[str, Any]]:
    clauses = [_time_range_filter(spec, now_ms)]

    for field_name, value in (
        (FIELD_ENVIRONMENT, spec.environment),
        (FIELD_APPLICATION, spec.application),
        (FIELD_DOMAIN, spec.domain),
        (FIELD_ORGANIZATION, spec.organization),
        (FIELD_INTERFACE_ID, spec.interface_id),
    ):
        if value:
            clauses.append({"term": {field_name: value}})

    if spec.correlation_id:
        clauses.append(_wildcard(FIELD_CORRELATION_ID, spec.correlation_id))
    if spec.search:
        clauses.append({
            "bool": {
                "should": [_wildcard(f, spec.search) for f in SEARCH_FIELDS],
                "minimum_should_match": 1,
            }
        })
    return clauses


def search_params(spec: CorrelationFilter) -> Dict[str, Any]:
    tuning = SEARCH_TUNING_WIDE if spec.time_range_seconds >= WIDE_RANGE_SECONDS else SEARCH_TUNING_DEFAULT
    return {
        "request_cache": "true",
        "allow_partial_search_results": "true",
        **tuning,
    }


def _trace_point_filter(tp: TracePoint) -> Dict[str, Any]:
    return {"term": {FIELD_TRACE_POINT: tp.value}}


def correlation_sub_aggs(top_applications: int | None = None) -> Dict[str, Any]:
    if top_applications is None:
        top_applications = settings.top_applications
    return {
        "applications": {"terms": {"field": FIELD_APPLICATION, "size": top_applications}},
        "app_count": {"cardinality": {"field": FIELD_APPLICATION}},
        "interface_id": {"terms": {"field": FIELD_INTERFACE_ID, "size": 1}},
        "interface_domain": {"terms": {"field": FIELD_DOMAIN, "size": 1}},
        "interface_org": {"terms": {"field": FIELD_ORGANIZATION, "size": 1}},
        "start_event": {
            "filter": _trace_point_filter(TracePoint.start),
            "aggs": {"start_time": {"min": {"field": FIELD_TIMESTAMP}}},
        },
        "end_event": {
            "filter": _trace_point_filter(TracePoint.end),
            "aggs": {"end_time": {"max": {"field": FIELD_TIMESTAMP}}},
        },
        "has_exception": {"filter": _trace_point_filter(TracePoint.exception)},
        "overall_status": {
            "bucket_script": {
                "buckets_path": {
                    "start": "start_event>_count",
                    "end": "end_event>_count",
                    "exception": "has_exception>_count",
                    "apps": "app_count",
                },
                "script": status_script(),
            }
        },
    }


def _clamp(size: int) -> int:
    return max(1, min(int(size), settings.max_bucket_window))


def _search_body(spec: CorrelationFilter, now_ms: int, extra: List[Dict[str, Any]], aggs: Dict[str, Any],
                 timeout_s: int | None) -> Dict[str, Any]:
    return {
        "size": 0,
        "track_total_hits": False,
        "timeout": f"{timeout_s or settings.store_timeout}s",
        "query": {"bool": {"filter": build_filters(spec, now_ms) + extra}},
        "aggs": aggs,
    }


def _total_correlations() -> Dict[str, Any]:
    return {"cardinality": {"field": FIELD_CORRELATION_ID}}


def _started_after(after: Cursor) -> Dict[str, Any]:
    """START documents that keep a correlation's earliest START after the cursor.

    A correlation whose earliest START equals the cursor time is kept only when
    its id sorts after the cursor id; every START of a correlation that sorts
    at or before the cursor is excluded, so its minimum never reappears.
    """
    at = {"gte": after.start_ms, "lte": after.start_ms, "format": "epoch_millis"}
    return {
        "bool": {
            "should": [
                {"range": {FIELD_TIMESTAMP: {"lt": after.start_ms, "format": "epoch_millis"}}},
                {"bool": {"filter": [
                    {"range": {FIELD_TIMESTAMP: at}},
                    {"range": {FIELD_CORRELATION_ID: {"gt": after.correlation_id}}},
                ]}},
            ],
            "minimum_should_match": 1,
        }
    }


def build_started_ids_query(
    spec: CorrelationFilter,
    now_ms: int,
    size: int,
    after: Optional[Cursor] = None,
    index: str | None = None,
    timeout_s: int | None = None,
) -> StoreQuery:
    """Next ``size`` correlation ids that have a START, newest earliest START first."""
    size = _clamp(size)
    start_clauses = [_trace_point_filter(TracePoint.start)]
    if after is not None:
        start_clauses.append(_started_after(after))
    aggs = {
        "started": {
            "filter": {"bool": {"filter": start_clauses}},
            "aggs": {
                "ids": {
                    "terms": {
                        "field": FIELD_CORRELATION_ID,
                        "size": size,
                        "order": [{"first_start": "desc"}, {"_key": "asc"}],
                    },
                    "aggs": {"first_start": {"min": {"field": FIELD_TIMESTAMP}}},
                }
            },
        },
        "total_correlations": _total_correlations(),
    }
    return StoreQuery(
        index=index or settings.store_index,
        body=_search_body(spec, now_ms, [], aggs, timeout_s),
        spec=spec,
        now_ms=now_ms,
        kind=KIND_STARTED_IDS,
        params=search_params(spec),
        size=size,
        after=after,
    )


def build_unstarted_ids_query(
    spec: CorrelationFilter,
    now_ms: int,
    size: int,
    after: Optional[Cursor] = None,
    index: str | None = None,
    timeout_s: int | None = None,
) -> StoreQuery:
    """Next ``size`` correlation ids in key order, each with its START count.

    Only ids whose ``start_event`` count is zero belong to the trailing segment;
    the rest were already served by the started segment.
    """
    size = _clamp(size)
    scope: Dict[str, Any] = {"match_all": {}}
    if after is not None:
        scope = {"range": {FIELD_CORRELATION_ID: {"gt": after.correlation_id}}}
    aggs = {
        "unstarted": {
            "filter": scope,
            "aggs": {
                "ids": {
                    "terms": {"field": FIELD_CORRELATION_ID, "size": size, "order": {"_key": "asc"}},
                    "aggs": {"start_event": {"filter": _trace_point_filter(TracePoint.start)}},
                }
            },
        },
        "total_correlations": _total_correlations(),
    }
    return StoreQuery(
        index=index or settings.store_index,
        body=_search_body(spec, now_ms, [], aggs, timeout_s),
        spec=spec,
        now_ms=now_ms,
        kind=KIND_UNSTARTED_IDS,
        params=search_params(spec),
        size=size,
        after=after,
    )


def build_correlation_query(
    spec: CorrelationFilter,
    now_ms: int,
    ids: Sequence[str],
    status_pushdown: bool = False,
    index: str | None = None,
    timeout_s: int | None = None,
) -> StoreQuery:
    """Full summaries for the given correlation ids."""
    ids = tuple(ids)[:settings.max_bucket_window]
    sub_aggs = correlation_sub_aggs()

    pushdown = status_pushdown and spec.status is not None
    if pushdown:
        sub_aggs["status_filter"] = {
            "bucket_selector": {
                "buckets_path": {"status": "overall_status"},
                "script": status_selector_script(spec.status),
            }
        }

    aggs = {
        KIND_CORRELATIONS: {
            "terms": {
                "field": FIELD_CORRELATION_ID,
                "size": max(1, len(ids)),
                "order": {"_key": "asc"},
            },
            "aggs": sub_aggs,
        },
    }
    id_filter = [{"terms": {FIELD_CORRELATION_ID: list(ids)}}]
    return StoreQuery(
        index=index or settings.store_index,
        body=_search_body(spec, now_ms, id_filter, aggs, timeout_s),
        spec=spec,
        now_ms=now_ms,
        kind=KIND_CORRELATIONS,
        params=search_params(spec),
        size=len(ids),
        ids=ids,
        status_pushdown=pushdown,
    )


def build_count_query(spec: CorrelationFilter, now_ms: int, index: str | None = None) -> StoreQuery:
    return StoreQuery(
        index=index or settings.store_index,
        body={"query": {"bool": {"filter": build_filters(spec, now_ms)}}},
        spec=spec,
        now_ms=now_ms,
        kind=KIND_COUNT,
    )


FACET_FIELDS = {
    "environments": (FIELD_ENVIRONMENT, 20),
    "organizations": (FIELD_ORGANIZATION, 50),
    "domains": (FIELD_DOMAIN, 50),
    "applications": (FIELD_APPLICATION, 100),
    "interfaces": (FIELD_INTERFACE_ID, 100),
}


def build_facets_query(spec: CorrelationFilter, now_ms: int, index: str | None = None) -> StoreQuery:
    # facets narrow only by time and environment so the menus stay populated
    clauses = [_time_range_filter(spec, now_ms)]
    if spec.environment:
        clauses.append({"term": {FIELD_ENVIRONMENT: spec.environment}})
    return StoreQuery(
        index=index or settings.store_index,
        body={
            "size": 0,
            "query": {"bool": {"filter": clauses}},
            "aggs": {
                name: {"terms": {"field": field_name, "size": size}}
                for name, (field_name, size) in FACET_FIELDS.items()
            },
        },
        spec=spec,
        now_ms=now_ms,
        kind=KIND_FACETS,
        params={"request_cache": "true"},
    )
