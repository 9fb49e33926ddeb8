"""
Initialization of the store package, exposing the caches and the key-value client.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from store.client import redis_rpush, redis_lrange, redis_delete, is_using_fallback
from store.cache import CountCache
from store.metrics import QueryMetrics, QueryMetricsRecorder

__all__ = [
    "redis_rpush", "redis_lrange", "redis_delete", "is_using_fallback",
    "CountCache", "QueryMetrics", "QueryMetricsRecorder",
]
