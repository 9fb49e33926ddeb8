"""
Shared helper functions for event store connectors.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from datasources.exceptions import InvalidStoreQuery, StoreAuthError, StoreTimeout, StoreUnavailable

# upstream statuses worth retrying
TRANSIENT_STATUS = frozenset({429, 502, 503, 504})
AUTH_STATUS = frozenset({401, 403})


def _error_reason(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("reason") or error.get("type") or error)[:200]
    return str(error or body)[:200]


def raise_for_store_status(resp: httpx.Response, label: str) -> None:
    if resp.status_code < 400:
        return
    reason = _error_reason(resp)
    if resp.status_code in AUTH_STATUS:
        raise StoreAuthError(f"{label} rejected credentials [{resp.status_code}]")
    if resp.status_code in TRANSIENT_STATUS:
        raise StoreUnavailable(f"{label} temporarily unavailable [{resp.status_code}]: {reason}")
    raise InvalidStoreQuery(f"{label} failed [{resp.status_code}]: {reason}")


async def request_json(
    method: str,
    url: str,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = 30,
    verify: bool = True,
    label: str = "store request",
) -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout, verify=verify) as client:
            resp = await client.request(method, url, json=json, params=params, headers=headers)
            raise_for_store_status(resp, label)
            return resp.json()
    except httpx.TimeoutException as e:
        raise StoreTimeout(f"{label} timed out after {timeout}s") from e
    except httpx.RequestError as e:
        raise StoreUnavailable(f"Cannot reach event store at {url}") from e


async def request_status(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = 30,
    verify: bool = True,
    label: str = "store request",
) -> int:
    try:
        async with httpx.AsyncClient(timeout=timeout, verify=verify) as client:
            resp = await client.request(method, url, headers=headers)
    except httpx.TimeoutException as e:
        raise StoreTimeout(f"{label} timed out after {timeout}s") from e
    except httpx.RequestError as e:
        raise StoreUnavailable(f"Cannot reach event store at {url}") from e
    if resp.status_code == 404:
        return 404
    raise_for_store_status(resp, label)
    return resp.status_code
