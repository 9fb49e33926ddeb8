"""
Key naming for the key-value store and the in-process caches.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib


def _slug(value: str) -> str:
    # Internal cache keys do not require reversibility; use strong stable hashing.
    return hashlib.sha256(value.encode()).hexdigest()[:32]


def count(index: str, canonical_filter: str) -> str:
    return f"ct:{index}:count:{_slug(canonical_filter)}"


def query_metrics(index: str) -> str:
    return f"ct:{index}:query-metrics"
