"""
Tests for datasource factory connector construction.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from config import STORE_BACKEND_ELASTICSEARCH
from connectors.elasticsearch import ElasticsearchConnector
from datasources.data_config import DataSourceSettings
from datasources.factory import DataSourceFactory
from datasources.provider import DataSourceProvider


def _cfg(**overrides):
    values = dict(
        store_backend=STORE_BACKEND_ELASTICSEARCH,
        store_url="http://es:9200",
        store_index="logs-x",
        store_api_key=None,
        store_username="elastic",
        store_password="secret",
        store_timeout=42,
        store_verify_tls=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_factory_passes_connector_settings():
    conn = DataSourceFactory.create_store(_cfg())
    assert isinstance(conn, ElasticsearchConnector)
    assert conn.timeout == 42
    assert conn.index == "logs-x"
    assert conn.verify_tls is False


def test_factory_rejects_unknown_backend():
    with pytest.raises(ValueError):
        DataSourceFactory.create_store(_cfg(store_backend="loki"))


def test_settings_validation():
    settings = DataSourceSettings(store_url="http://es:9200/", store_backend="Elasticsearch")
    assert settings.store_url == "http://es:9200"
    assert settings.store_backend == STORE_BACKEND_ELASTICSEARCH
    with pytest.raises(ValueError):
        DataSourceSettings(store_timeout=0)


def test_provider_uses_configured_index():
    provider = DataSourceProvider(DataSourceSettings(store_index="logs-y"))
    assert provider.index == "logs-y"
    assert provider.store.index == "logs-y"
