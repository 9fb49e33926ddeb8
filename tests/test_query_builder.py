"""
Tests for the store query DSL produced from correlation filters.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from api.requests import CorrelationFilter
from config import Settings, settings
from engine.cursor import Cursor
from engine.enums import LifecycleStatus
from engine.query_builder import (
    build_correlation_query,
    build_count_query,
    build_facets_query,
    build_filters,
    build_started_ids_query,
    build_unstarted_ids_query,
    search_params,
)

NOW = 1_700_000_000_000


def _spec(**params):
    return CorrelationFilter.from_query(params)


def test_builder_is_pure_for_fixed_clock():
    spec = _spec(timeRange="1h", application="orders-api", search="abc")
    a = build_started_ids_query(spec, now_ms=NOW, size=11)
    b = build_started_ids_query(spec, now_ms=NOW, size=11)
    assert a.body == b.body
    assert a.params == b.params


def test_filters_include_range_terms_and_wildcards():
    spec = _spec(timeRange="15m", environment="prod", domain="sales", correlationId="a*b", search="Ord")
    clauses = build_filters(spec, NOW)
    assert clauses[0] == {"range": {"@timestamp": {"gte": NOW - 900_000, "lte": NOW, "format": "epoch_millis"}}}
    assert {"term": {"environment": "prod"}} in clauses
    assert {"term": {"interface_metadata.domain": "sales"}} in clauses
    wildcard = next(c for c in clauses if "wildcard" in c)
    assert wildcard["wildcard"]["correlationId"] == {"value": "*a\\*b*", "case_insensitive": True}
    search = next(c for c in clauses if "bool" in c)["bool"]
    assert search["minimum_should_match"] == 1
    assert len(search["should"]) == 3


def test_correlation_aggregation_shape():
    query = build_correlation_query(_spec(), now_ms=NOW, ids=["b", "a"])
    terms = query.body["aggs"]["correlations"]["terms"]
    assert terms["field"] == "correlationId"
    assert terms["size"] == 2
    assert {"terms": {"correlationId": ["b", "a"]}} in query.body["query"]["bool"]["filter"]
    sub = query.body["aggs"]["correlations"]["aggs"]
    assert sub["start_event"]["filter"] == {"term": {"tracePoint": "START"}}
    assert sub["end_event"]["aggs"]["end_time"] == {"max": {"field": "@timestamp"}}
    assert "overall_status" in sub
    assert "status_filter" not in sub
    assert query.body["size"] == 0
    assert query.ids == ("b", "a")


def test_status_pushdown_adds_bucket_selector():
    spec = _spec(status="failed")
    query = build_correlation_query(spec, now_ms=NOW, ids=["a"], status_pushdown=True)
    selector = query.body["aggs"]["correlations"]["aggs"]["status_filter"]["bucket_selector"]
    assert selector["script"] == f"params.status == {LifecycleStatus.failed.code}"
    assert query.status_pushdown is True

    without = build_correlation_query(spec, now_ms=NOW, ids=["a"], status_pushdown=False)
    assert "status_filter" not in without.body["aggs"]["correlations"]["aggs"]


def test_started_ids_query_orders_by_earliest_start():
    query = build_started_ids_query(_spec(), now_ms=NOW, size=11)
    started = query.body["aggs"]["started"]
    assert started["filter"] == {"bool": {"filter": [{"term": {"tracePoint": "START"}}]}}
    terms = started["aggs"]["ids"]["terms"]
    assert terms["size"] == 11
    assert terms["order"] == [{"first_start": "desc"}, {"_key": "asc"}]
    assert started["aggs"]["ids"]["aggs"]["first_start"] == {"min": {"field": "@timestamp"}}
    assert "total_correlations" in query.body["aggs"]


def test_started_ids_after_cursor_excludes_earlier_positions():
    cursor = Cursor(start_ms=NOW - 10, correlation_id="c", anchor_ms=NOW, fingerprint="f")
    query = build_started_ids_query(_spec(), now_ms=NOW, size=5, after=cursor)
    clauses = query.body["aggs"]["started"]["filter"]["bool"]["filter"]
    after = clauses[1]["bool"]
    assert after["minimum_should_match"] == 1
    older, tie = after["should"]
    assert older == {"range": {"@timestamp": {"lt": NOW - 10, "format": "epoch_millis"}}}
    assert {"range": {"correlationId": {"gt": "c"}}} in tie["bool"]["filter"]
    # position filters stay inside the aggregation so the total covers the whole window
    assert query.body["query"]["bool"]["filter"] == build_filters(_spec(), NOW)


def test_unstarted_ids_query_walks_keys_in_order():
    first = build_unstarted_ids_query(_spec(), now_ms=NOW, size=7)
    assert first.body["aggs"]["unstarted"]["filter"] == {"match_all": {}}
    ids = first.body["aggs"]["unstarted"]["aggs"]["ids"]
    assert ids["terms"]["order"] == {"_key": "asc"}
    assert ids["aggs"]["start_event"]["filter"] == {"term": {"tracePoint": "START"}}

    cursor = Cursor(start_ms=None, correlation_id="k9", anchor_ms=NOW, fingerprint="f")
    later = build_unstarted_ids_query(_spec(), now_ms=NOW, size=7, after=cursor)
    assert later.body["aggs"]["unstarted"]["filter"] == {"range": {"correlationId": {"gt": "k9"}}}


def test_size_is_clamped():
    query = build_started_ids_query(_spec(), now_ms=NOW, size=10**9)
    assert query.size == settings.max_bucket_window


def test_summaries_fit_the_store_bucket_limit():
    ids = [f"c{i}" for i in range(settings.max_bucket_window + 50)]
    query = build_correlation_query(_spec(), now_ms=NOW, ids=ids)
    per_correlation = 1 + settings.top_applications + 3 + 3
    assert len(query.ids) == settings.max_bucket_window
    assert len(query.ids) * per_correlation <= settings.store_max_buckets


def test_settings_reject_a_window_beyond_the_bucket_limit():
    with pytest.raises(ValidationError):
        Settings(max_bucket_window=5000, store_max_buckets=65_536)
    assert Settings(max_bucket_window=5000, store_max_buckets=100_000).max_bucket_window == 5000


def test_search_body_timeout_follows_store_timeout():
    query = build_started_ids_query(_spec(), now_ms=NOW, size=3, timeout_s=12)
    assert query.body["timeout"] == "12s"


def test_wide_ranges_get_heavier_tuning():
    assert search_params(_spec(timeRange="15m"))["max_concurrent_shard_requests"] == 5
    assert search_params(_spec(timeRange="2d"))["batched_reduce_size"] == 1024


def test_count_query_reuses_filters():
    spec = _spec(application="orders-api")
    assert build_count_query(spec, NOW).body["query"]["bool"]["filter"] == build_filters(spec, NOW)


def test_facets_only_narrow_by_environment():
    query = build_facets_query(_spec(environment="qa", application="orders-api"), NOW)
    clauses = query.body["query"]["bool"]["filter"]
    assert len(clauses) == 2
    assert {"term": {"environment": "qa"}} in clauses
    assert set(query.body["aggs"]) == {"environments", "organizations", "domains", "applications", "interfaces"}
