"""
Constants and configuration for the Correlation Tracer.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import os

from pydantic import model_validator
from pydantic_settings import BaseSettings


REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
METRICS_MIRROR_TTL: int = int(os.getenv("METRICS_MIRROR_TTL", "86400"))

STORE_BACKEND_ELASTICSEARCH = "elasticsearch"

CORRTRACE_STORE_BACKEND = os.getenv("CORRTRACE_STORE_BACKEND", STORE_BACKEND_ELASTICSEARCH).lower()
CORRTRACE_STORE_URL = os.getenv("CORRTRACE_STORE_URL", "http://elasticsearch:9200").rstrip("/")
CORRTRACE_STORE_API_KEY = os.getenv("CORRTRACE_STORE_API_KEY", "")
CORRTRACE_STORE_USERNAME = os.getenv("CORRTRACE_STORE_USERNAME", "")
CORRTRACE_STORE_PASSWORD = os.getenv("CORRTRACE_STORE_PASSWORD", "")
CORRTRACE_STORE_INDEX = os.getenv("CORRTRACE_STORE_INDEX", "logs-mulesoft-default")
CORRTRACE_STORE_TIMEOUT = int(os.getenv("CORRTRACE_STORE_TIMEOUT", "30"))
CORRTRACE_STORE_MAX_RETRIES = int(os.getenv("CORRTRACE_STORE_MAX_RETRIES", "5"))
CORRTRACE_STORE_VERIFY_TLS = os.getenv("CORRTRACE_STORE_VERIFY_TLS", "true").lower() not in {"0", "false", "no"}
CORRTRACE_STARTUP_TIMEOUT = int(os.getenv("CORRTRACE_STARTUP_TIMEOUT", "120"))
# bucket limit of one search response (Elasticsearch search.max_buckets)
CORRTRACE_STORE_MAX_BUCKETS = int(os.getenv("CORRTRACE_STORE_MAX_BUCKETS", "65536"))

# the HTTP client waits this much longer than the search body timeout so the
# store can answer with partial results before the connection is dropped
STORE_TIMEOUT_GRACE_SECONDS = 5

# retry backoff for transient store failures (seconds)
STORE_RETRY_DELAY = 0.5
STORE_RETRY_BACKOFF = 2.0

# document fields in the log index
FIELD_TIMESTAMP = "@timestamp"
FIELD_CORRELATION_ID = "correlationId"
FIELD_TRACE_POINT = "tracePoint"
FIELD_APPLICATION = "applicationName"
FIELD_INTERFACE_ID = "interfaceId"
FIELD_DOMAIN = "interface_metadata.domain"
FIELD_ORGANIZATION = "organization"
FIELD_ENVIRONMENT = "environment"

DEFAULT_TIME_RANGE = "15m"
DEFAULT_METRICS_TIME_RANGE = "1h"
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 2000
TOP_APPLICATIONS = 10
# buckets one correlation adds to a summaries response: itself, its top
# applications, three single-value terms and three trace point filters
FIXED_BUCKETS_PER_CORRELATION = 7
BUCKETS_PER_CORRELATION = TOP_APPLICATIONS + FIXED_BUCKETS_PER_CORRELATION
MAX_BUCKET_WINDOW = CORRTRACE_STORE_MAX_BUCKETS // BUCKETS_PER_CORRELATION

COUNT_CACHE_TTL_SECONDS = 5.0
COUNT_CACHE_MAX_ENTRIES = 256
METRICS_CAPACITY = 1000
METRICS_SLOWEST_DEFAULT = 5

# search tuning for wide time ranges (seconds threshold)
WIDE_RANGE_SECONDS = 24 * 3600
SEARCH_TUNING_DEFAULT = {"batched_reduce_size": 512, "max_concurrent_shard_requests": 5}
SEARCH_TUNING_WIDE = {"batched_reduce_size": 1024, "max_concurrent_shard_requests": 3}


class Settings(BaseSettings):
    store_backend: str = CORRTRACE_STORE_BACKEND
    store_index: str = CORRTRACE_STORE_INDEX
    store_timeout: int = CORRTRACE_STORE_TIMEOUT
    startup_timeout: int = CORRTRACE_STARTUP_TIMEOUT

    default_time_range: str = DEFAULT_TIME_RANGE
    # longest accepted timeRange, in seconds
    max_time_range_seconds: int = 30 * 24 * 3600

    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE
    top_applications: int = TOP_APPLICATIONS
    # upper bound on correlation buckets requested in one store round trip
    max_bucket_window: int = MAX_BUCKET_WINDOW
    store_max_buckets: int = CORRTRACE_STORE_MAX_BUCKETS

    # evaluate the status filter inside the store aggregation instead of in memory
    status_pushdown: bool = True

    count_cache_ttl_seconds: float = COUNT_CACHE_TTL_SECONDS
    count_cache_max_entries: int = COUNT_CACHE_MAX_ENTRIES

    metrics_capacity: int = METRICS_CAPACITY
    metrics_mirror_enabled: bool = True
    metrics_mirror_max_items: int = METRICS_CAPACITY

    store_redis_retry_cooldown_seconds: float = 10.0
    store_fallback_max_items: int = 10_000

    @model_validator(mode="after")
    def window_fits_bucket_limit(self) -> "Settings":
        per_correlation = self.top_applications + FIXED_BUCKETS_PER_CORRELATION
        if self.max_bucket_window < 1:
            raise ValueError("max_bucket_window must be >= 1")
        if self.max_bucket_window * per_correlation > self.store_max_buckets:
            raise ValueError(
                f"max_bucket_window={self.max_bucket_window} needs up to "
                f"{self.max_bucket_window * per_correlation} buckets per search; "
                f"raise store_max_buckets (search.max_buckets) or lower the window"
            )
        return self

    model_config = {
        "env_prefix": "CORRTRACE_",
        "extra": "ignore",
    }


settings = Settings()
