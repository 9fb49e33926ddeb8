"""
Readiness behavior tests for the API ready endpoint.
"""

from __future__ import annotations

import json

import pytest

import main as app_main
from datasources.data_config import DataSourceSettings
from datasources.provider import DataSourceProvider


@pytest.mark.asyncio
async def test_ready_endpoint_returns_503_with_backend_details_when_not_ready():
    app_main._backend_ready = False
    app_main._backend_status = {"elasticsearch": "failed: timeout"}
    response = await app_main.ready()
    payload = json.loads(response.body.decode("utf-8"))
    assert response.status_code == 503
    assert payload["ready"] is False
    assert payload["backends"]["elasticsearch"].startswith("failed:")


@pytest.mark.asyncio
async def test_wait_for_store_bg_marks_failure(monkeypatch):
    async def fake_wait_for(name, url, timeout, headers=None, accept_status=(200,), verify=True):
        raise RuntimeError("elasticsearch down")

    monkeypatch.setattr(app_main, "wait_for", fake_wait_for)
    app_main._backend_ready = True
    app_main._backend_status = {}

    provider = DataSourceProvider(DataSourceSettings(store_url="http://es:9200"))
    await app_main._wait_for_store_bg(provider, 1)

    assert app_main._backend_ready is False
    assert app_main._backend_status["elasticsearch"].startswith("failed:")


@pytest.mark.asyncio
async def test_wait_for_store_bg_marks_ready_and_missing_index(monkeypatch):
    seen = {}

    async def fake_wait_for(name, url, timeout, headers=None, accept_status=(200,), verify=True):
        seen["url"] = url

    async def no_index(name=None):
        return False

    monkeypatch.setattr(app_main, "wait_for", fake_wait_for)
    app_main._backend_ready = False
    app_main._backend_status = {}

    provider = DataSourceProvider(DataSourceSettings(store_url="http://es:9200"))
    monkeypatch.setattr(provider, "index_exists", no_index)
    await app_main._wait_for_store_bg(provider, 1)

    assert seen["url"] == "http://es:9200/_cluster/health"
    assert app_main._backend_ready is True
    assert app_main._backend_status == {"elasticsearch": "ready", "index": "missing"}
