import base64
import logging
from typing import Any, Dict, Optional

from config import (
    CORRTRACE_STORE_MAX_RETRIES,
    STORE_RETRY_BACKOFF,
    STORE_RETRY_DELAY,
    STORE_TIMEOUT_GRACE_SECONDS,
)
from datasources.base import EventStoreConnector, RawAggregationResult, ShardStats
from datasources.exceptions import StoreUnavailable
from datasources.helpers import request_json, request_status
from datasources.retry import retry

log = logging.getLogger(__name__)

HEALTH_PATH = "/_cluster/health"

_store_retry = retry(
    attempts=CORRTRACE_STORE_MAX_RETRIES,
    delay=STORE_RETRY_DELAY,
    backoff=STORE_RETRY_BACKOFF,
    exceptions=(StoreUnavailable,),
)


def _hits_total(raw: Any) -> Optional[int]:
    if isinstance(raw, dict):
        raw = raw.get("value")
    try:
        return None if raw is None else int(raw)
    except (TypeError, ValueError):
        return None


class ElasticsearchConnector(EventStoreConnector):
    health_path = HEALTH_PATH

    def __init__(
        self,
        base_url: str,
        index: str,
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
        verify_tls: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(base_url, timeout=timeout, headers=headers)
        self.index = index
        self.api_key = api_key
        self.username = username
        self.password = password
        self.verify_tls = verify_tls

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"ApiKey {self.api_key}"
        elif self.username:
            token = base64.b64encode(f"{self.username}:{self.password or ''}".encode()).decode()
            headers["Authorization"] = f"Basic {token}"
        return headers

    @property
    def request_timeout(self) -> float:
        return float(self.timeout + STORE_TIMEOUT_GRACE_SECONDS)

    async def _call(self, method: str, path: str, *, json=None, params=None, label: str) -> Dict[str, Any]:
        return await request_json(
            method,
            f"{self.base_url}{path}",
            json=json,
            params=params,
            headers=self._headers(),
            timeout=self.request_timeout,
            verify=self.verify_tls,
            label=label,
        )

    @_store_retry
    async def search(self, query) -> RawAggregationResult:
        raw = await self._call(
            "POST",
            f"/{query.index}/_search",
            json=query.body,
            params=query.params or None,
            label="Elasticsearch search",
        )
        result = RawAggregationResult(
            aggregations=raw.get("aggregations") or {},
            took_ms=int(raw.get("took", 0) or 0),
            shards=ShardStats.from_response(raw.get("_shards")),
            timed_out=bool(raw.get("timed_out", False)),
            hits_total=_hits_total((raw.get("hits") or {}).get("total")),
        )
        if result.partial:
            log.warning(
                "Partial search result from %s (timed_out=%s, failed shards=%d/%d)",
                query.index, result.timed_out, result.shards.failed, result.shards.total,
            )
        return result

    @_store_retry
    async def count(self, query) -> int:
        raw = await self._call("POST", f"/{query.index}/_count", json=query.body, label="Elasticsearch count")
        return int(raw.get("count", 0) or 0)

    @_store_retry
    async def cluster_health(self) -> Dict[str, Any]:
        return await self._call("GET", HEALTH_PATH, label="Elasticsearch cluster health")

    @_store_retry
    async def cluster_stats(self) -> Dict[str, Any]:
        return await self._call("GET", "/_cluster/stats", label="Elasticsearch cluster stats")

    @_store_retry
    async def index_exists(self, name: str) -> bool:
        status = await request_status(
            "HEAD",
            f"{self.base_url}/{name}",
            headers=self._headers(),
            timeout=self.timeout,
            verify=self.verify_tls,
            label="Elasticsearch index check",
        )
        return status != 404
