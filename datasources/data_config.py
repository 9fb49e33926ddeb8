"""
Connection settings for the log event store.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings
from config import (
    STORE_BACKEND_ELASTICSEARCH,
    CORRTRACE_STORE_BACKEND,
    CORRTRACE_STORE_URL,
    CORRTRACE_STORE_API_KEY,
    CORRTRACE_STORE_USERNAME,
    CORRTRACE_STORE_PASSWORD,
    CORRTRACE_STORE_INDEX,
    CORRTRACE_STORE_TIMEOUT,
    CORRTRACE_STORE_MAX_RETRIES,
    CORRTRACE_STORE_VERIFY_TLS,
    CORRTRACE_STARTUP_TIMEOUT,
)

class DataSourceSettings(BaseSettings):
    store_backend: str = CORRTRACE_STORE_BACKEND
    store_url: str = CORRTRACE_STORE_URL
    store_api_key: Optional[str] = CORRTRACE_STORE_API_KEY or None
    store_username: Optional[str] = CORRTRACE_STORE_USERNAME or None
    store_password: Optional[str] = CORRTRACE_STORE_PASSWORD or None
    store_index: str = CORRTRACE_STORE_INDEX
    store_timeout: int = CORRTRACE_STORE_TIMEOUT
    store_max_retries: int = CORRTRACE_STORE_MAX_RETRIES
    store_verify_tls: bool = CORRTRACE_STORE_VERIFY_TLS
    startup_timeout: int = CORRTRACE_STARTUP_TIMEOUT

    @field_validator("store_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return str(v).rstrip("/") if v is not None else v

    @field_validator("store_backend", mode="before")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        value = str(v or "").strip().lower()
        if value not in {STORE_BACKEND_ELASTICSEARCH}:
            raise ValueError(f"Unsupported store backend: {value!r}")
        return value

    @field_validator("store_timeout", "store_max_retries")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    model_config = {"env_prefix": "CORRTRACE_", "extra": "ignore"}
