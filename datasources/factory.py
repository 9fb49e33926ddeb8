"""
Factory for creating event store connectors based on configuration.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from connectors.elasticsearch import ElasticsearchConnector


class DataSourceFactory:

    @staticmethod
    def create_store(config):
        from config import STORE_BACKEND_ELASTICSEARCH
        if config.store_backend == STORE_BACKEND_ELASTICSEARCH:
            return ElasticsearchConnector(
                config.store_url,
                index=config.store_index,
                api_key=config.store_api_key,
                username=config.store_username,
                password=config.store_password,
                timeout=config.store_timeout,
                verify_tls=config.store_verify_tls,
            )
        raise ValueError("Unsupported store backend")
