"""
Test Suite for Store Client

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from store import client as store_client
from store.client import _fallback_lists, redis_delete, redis_lrange, redis_rpush


@pytest.mark.asyncio
async def test_fallback_list_operations():
    await redis_rpush("k1", "a")
    await redis_rpush("k1", "b")
    assert await redis_lrange("k1") == ["a", "b"]
    await redis_delete("k1")
    assert await redis_lrange("k1") == []


@pytest.mark.asyncio
async def test_fallback_list_is_capped():
    for i in range(5):
        await redis_rpush("capped", str(i), max_len=3)
    assert _fallback_lists["capped"] == ["2", "3", "4"]


@pytest.mark.asyncio
async def test_close_redis_without_client_is_noop():
    await store_client.close_redis()
    assert store_client._redis_client is None
