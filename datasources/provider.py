"""
Provider for the log event store connector.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from typing import Any, Dict

from .base import RawAggregationResult
from .data_config import DataSourceSettings
from .factory import DataSourceFactory


class DataSourceProvider:
    def __init__(self, settings: DataSourceSettings):
        self.settings = settings
        self.store = DataSourceFactory.create_store(settings)

    @property
    def index(self) -> str:
        return self.settings.store_index

    async def search(self, query) -> RawAggregationResult:
        return await self.store.search(query)

    async def count(self, query) -> int:
        return await self.store.count(query)

    async def cluster_health(self) -> Dict[str, Any]:
        return await self.store.cluster_health()

    async def cluster_stats(self) -> Dict[str, Any]:
        return await self.store.cluster_stats()

    async def index_exists(self, name: str | None = None) -> bool:
        return await self.store.index_exists(name or self.index)
