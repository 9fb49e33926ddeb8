"""
Base connector and result types for the log event store.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from engine.query_builder import StoreQuery


@dataclass(frozen=True)
class ShardStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_response(cls, raw: Optional[Dict[str, Any]]) -> "ShardStats":
        raw = raw or {}
        return cls(
            total=int(raw.get("total", 0) or 0),
            successful=int(raw.get("successful", 0) or 0),
            failed=int(raw.get("failed", 0) or 0),
            skipped=int(raw.get("skipped", 0) or 0),
        )


@dataclass
class RawAggregationResult:
    aggregations: Dict[str, Any] = field(default_factory=dict)
    took_ms: int = 0
    shards: ShardStats = field(default_factory=ShardStats)
    timed_out: bool = False
    hits_total: Optional[int] = None

    @property
    def partial(self) -> bool:
        return self.timed_out or self.shards.failed > 0

    def _agg(self, path: str) -> Dict[str, Any]:
        # "outer>inner" walks into single-bucket aggregations
        node: Any = self.aggregations
        for name in path.split(">"):
            node = node.get(name) if isinstance(node, dict) else None
        return node if isinstance(node, dict) else {}

    def buckets(self, name: str = "correlations") -> List[Dict[str, Any]]:
        return list(self._agg(name).get("buckets") or [])

    def other_doc_count(self, name: str = "correlations") -> int:
        return int(self._agg(name).get("sum_other_doc_count", 0) or 0)

    def metric(self, name: str) -> Optional[float]:
        value = (self.aggregations.get(name) or {}).get("value")
        return None if value is None else float(value)


class BaseConnector(ABC):
    health_path: str = ""

    def __init__(self, base_url: str, timeout: int = 30, headers: Optional[Dict[str, str]] = None):
        self.base_url = str(base_url).rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}

    @property
    def health_url(self) -> str:
        if not self.health_path:
            raise NotImplementedError("connector must define health_path")
        return f"{self.base_url}{self.health_path}"

    def _headers(self) -> Dict[str, str]:
        """Basic header set applied to every outbound request."""
        return {**self.headers, "Content-Type": "application/json"}


class EventStoreConnector(BaseConnector):
    @abstractmethod
    async def search(self, query: "StoreQuery") -> RawAggregationResult: ...

    @abstractmethod
    async def count(self, query: "StoreQuery") -> int: ...

    @abstractmethod
    async def cluster_health(self) -> Dict[str, Any]: ...

    @abstractmethod
    async def cluster_stats(self) -> Dict[str, Any]: ...

    @abstractmethod
    async def index_exists(self, name: str) -> bool: ...
