"""
Entry point for the correlation tracking API server.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from api.routes import router
from config import settings
from datasources.data_config import DataSourceSettings
from datasources.exceptions import BackendStartupTimeout
from datasources.provider import DataSourceProvider
from services.correlation_service import CorrelationService
from store.cache import CountCache
from store.client import close_redis
from store.metrics import QueryMetricsRecorder

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    stream=sys.stdout,
)
log = logging.getLogger(__name__)

_backend_ready = False
_backend_status: Dict[str, str] = {}


async def wait_for(
    name: str,
    url: str,
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
    accept_status: tuple = (200,),
    verify: bool = True,
) -> None:
    deadline = time.monotonic() + timeout
    attempt = 0
    async with httpx.AsyncClient(verify=verify) as client:
        while time.monotonic() < deadline:
            attempt += 1
            try:
                resp = await client.get(url, headers=headers or {}, timeout=3.0)
                if resp.status_code in accept_status:
                    log.info("%s ready (attempt %d, status %d)", name, attempt, resp.status_code)
                    return
                log.debug("%s health check returned %d (attempt %d)", name, resp.status_code, attempt)
            except Exception as exc:
                log.debug("%s not reachable (attempt %d): %s", name, attempt, exc)
            await asyncio.sleep(2)
    raise BackendStartupTimeout(f"{name} did not become ready within {timeout}s")


async def _wait_for_store_bg(provider: DataSourceProvider, timeout: float) -> None:
    global _backend_ready, _backend_status

    name = provider.settings.store_backend
    _backend_status[name] = "waiting"
    log.info("Store readiness check starting (timeout=%ds) ...", timeout)
    try:
        await wait_for(
            name,
            provider.store.health_url,
            timeout,
            headers=provider.store._headers(),
            accept_status=(200,),
            verify=provider.settings.store_verify_tls,
        )
    except Exception as exc:
        log.error("%s failed readiness: %s", name, exc)
        _backend_status[name] = f"failed: {exc}"
        _backend_ready = False
        return

    _backend_status[name] = "ready"
    try:
        if not await provider.index_exists():
            log.warning("Index %s does not exist yet; queries will return no data", provider.index)
            _backend_status["index"] = "missing"
        else:
            _backend_status["index"] = "ready"
    except Exception as exc:
        log.warning("Index check failed: %s", exc)
        _backend_status["index"] = f"unknown: {exc}"
    _backend_ready = True
    log.info("Store ready, correlation API fully operational")


def build_service(provider: DataSourceProvider) -> CorrelationService:
    count_cache = CountCache(
        ttl_seconds=settings.count_cache_ttl_seconds,
        max_entries=settings.count_cache_max_entries,
    )
    metrics = QueryMetricsRecorder.for_index(
        provider.index,
        capacity=settings.metrics_capacity,
        mirror=settings.metrics_mirror_enabled,
        mirror_max_items=settings.metrics_mirror_max_items,
    )
    return CorrelationService(
        provider,
        count_cache,
        metrics,
        status_pushdown=settings.status_pushdown,
        max_window=settings.max_bucket_window,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    provider = DataSourceProvider(settings=DataSourceSettings())
    service = build_service(provider)
    restored = await service.metrics.restore()
    if restored:
        log.info("Restored %d query metrics entries", restored)
    app.state.correlation_service = service

    readiness_task = asyncio.create_task(_wait_for_store_bg(provider, provider.settings.startup_timeout))
    try:
        yield
    finally:
        readiness_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await readiness_task
        await close_redis()


app = FastAPI(
    title="Correlation Tracking API",
    description="Groups integration log events by correlation ID and reports lifecycle status per transaction.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    started = time.perf_counter()
    response = await call_next(request)
    log.info(
        "%s %s -> %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000.0,
    )
    return response


app.include_router(router, prefix="/api")


@app.get("/api/ready", tags=["health"], summary="Backend readiness check")
async def ready() -> JSONResponse:
    code = 200 if _backend_ready else 503
    return JSONResponse(
        status_code=code,
        content={"ready": _backend_ready, "backends": _backend_status},
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=3007,
        log_level="info",
        access_log=True,
    )
