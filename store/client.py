"""
Client code for Redis access, with in-memory fallback if Redis is unavailable.

Only list operations are needed: query metrics are mirrored to a capped list
so they survive restarts and can be read back at startup.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

log = logging.getLogger(__name__)

_redis_client: Any = None
_fallback_lists: dict[str, list[str]] = {}
_using_fallback = False
_init_lock = asyncio.Lock()
_retry_after_monotonic: float = 0.0

try:
    from config import settings
    _MAX_FALLBACK_SIZE = int(settings.store_fallback_max_items)
    _REDIS_RETRY_COOLDOWN_SECONDS = float(settings.store_redis_retry_cooldown_seconds)
    _REDIS_OP_TIMEOUT_SECONDS = 0.5
except Exception:
    _MAX_FALLBACK_SIZE = 10_000
    _REDIS_RETRY_COOLDOWN_SECONDS = 10.0
    _REDIS_OP_TIMEOUT_SECONDS = 0.5


async def get_redis() -> Any:
    global _redis_client, _using_fallback, _retry_after_monotonic

    if _redis_client is not None:
        return _redis_client
    if time.monotonic() < _retry_after_monotonic:
        _using_fallback = True
        return None

    async with _init_lock:
        if _redis_client is not None:
            return _redis_client
        if time.monotonic() < _retry_after_monotonic:
            _using_fallback = True
            return None
        try:
            import redis.asyncio as aioredis
            from config import REDIS_URL

            client = aioredis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=0.5,
                socket_timeout=0.5,
            )
            await asyncio.wait_for(client.ping(), timeout=0.5)
            _redis_client = client
            _retry_after_monotonic = 0.0
            _using_fallback = False
            log.info("Redis connected: %s", REDIS_URL)
            return _redis_client
        except Exception as exc:
            _retry_after_monotonic = time.monotonic() + max(0.0, _REDIS_RETRY_COOLDOWN_SECONDS)
            if not _using_fallback:
                log.warning("Redis unavailable (%s), using in-memory fallback", exc)
                _using_fallback = True
            return None


def _fallback_push(key: str, value: str, max_len: Optional[int]) -> None:
    lst = _fallback_lists.setdefault(key, [])
    lst.append(value)
    limit = min(max_len or _MAX_FALLBACK_SIZE, _MAX_FALLBACK_SIZE)
    if len(lst) > limit:
        del lst[:-limit]


async def redis_rpush(key: str, value: str, ttl: Optional[int] = None, max_len: Optional[int] = None) -> None:
    client = await get_redis()
    if client is None:
        _fallback_push(key, value, max_len)
        return
    try:
        pipe = client.pipeline()
        pipe.rpush(key, value)
        if max_len:
            pipe.ltrim(key, -max_len, -1)
        if ttl:
            pipe.expire(key, ttl)
        await asyncio.wait_for(pipe.execute(), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis RPUSH error %s: %s", key, exc)
        _fallback_push(key, value, max_len)


async def redis_lrange(key: str) -> list[str]:
    client = await get_redis()
    if client is None:
        return list(_fallback_lists.get(key, []))
    try:
        return await asyncio.wait_for(client.lrange(key, 0, -1), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis LRANGE error %s: %s", key, exc)
        return list(_fallback_lists.get(key, []))


async def redis_delete(key: str) -> None:
    client = await get_redis()
    if client is None:
        _fallback_lists.pop(key, None)
        return
    try:
        await asyncio.wait_for(client.delete(key), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis DEL error %s: %s", key, exc)
        _fallback_lists.pop(key, None)


async def close_redis() -> None:
    global _redis_client
    client, _redis_client = _redis_client, None
    if client is None:
        return
    try:
        await client.aclose()
    except Exception as exc:
        log.debug("Redis close error: %s", exc)


def is_using_fallback() -> bool:
    return _using_fallback
