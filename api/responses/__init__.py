"""
Response models for API endpoints and internal data structures.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from engine.enums import LifecycleStatus


class ApiModel(BaseModel):
    # the dashboard speaks camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApplicationCount(ApiModel):

    name: str
    count: int


class CorrelationSummary(ApiModel):

    correlation_id: str
    applications: List[ApplicationCount] = Field(default_factory=list)
    app_count: int = 0
    interface_id: Optional[str] = None
    interface_domain: Optional[str] = None
    organization: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    elapsed_ms: Optional[int] = None
    status: LifecycleStatus
    status_code: int
    has_exception: bool = False
    event_count: int = 0
    data_quality: List[str] = Field(default_factory=list)

    # raw epoch milliseconds, kept for exact ordering and cursors
    start_ms: Optional[int] = Field(default=None, exclude=True)
    end_ms: Optional[int] = Field(default=None, exclude=True)


class CorrelationPage(ApiModel):

    data: List[CorrelationSummary]
    total: Optional[int] = None
    next_key: Optional[str] = None
    has_more: bool = False
    partial: bool = False
    warnings: List[str] = Field(default_factory=list)


class EventCount(ApiModel):

    count: int
    time_range: str
    cached: bool = False


class FacetBucket(ApiModel):

    key: str
    doc_count: int


class FilterOptions(ApiModel):

    environments: List[FacetBucket] = Field(default_factory=list)
    organizations: List[FacetBucket] = Field(default_factory=list)
    domains: List[FacetBucket] = Field(default_factory=list)
    applications: List[FacetBucket] = Field(default_factory=list)
    interfaces: List[FacetBucket] = Field(default_factory=list)


class ClusterInfo(ApiModel):

    cluster_name: Optional[str] = None
    number_of_nodes: int = 0
    number_of_data_nodes: int = 0
    active_shards: int = 0
    active_primary_shards: int = 0


class HealthStatus(ApiModel):

    status: str
    available: bool
    cluster_info: Optional[ClusterInfo] = None
    index_exists: Optional[bool] = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None
    metrics_store: Optional[str] = None


class ShardAverages(ApiModel):

    avg_total_shards: float = 0.0
    avg_failed_shards: float = 0.0
    avg_skipped_shards: float = 0.0


class QueryMetricsSummary(ApiModel):

    window_seconds: int
    total_queries: int = 0
    average_query_time: float = 0.0
    average_duration_ms: float = 0.0
    p95_query_time: float = 0.0
    cache_hit_rate: float = 0.0
    partial_rate: float = 0.0
    error_rate: float = 0.0
    shard_stats: ShardAverages = Field(default_factory=ShardAverages)
    slowest_queries: List[Dict[str, Any]] = Field(default_factory=list)


class PerformanceReport(ApiModel):

    query_metrics: QueryMetricsSummary
    cluster_health: Optional[Dict[str, Any]] = None


class QueryPreview(ApiModel):

    index: str
    params: Dict[str, Any]
    body: Dict[str, Any]
    summary_body: Dict[str, Any]
    filters_applied: int
