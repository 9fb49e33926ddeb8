"""
Shared dependencies for API route modules.

The correlation service is owned by the application (created in the lifespan
handler and stored on ``app.state``); routes receive it through
:func:`get_correlation_service` so tests can override it.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from api.requests import CorrelationFilter
from engine.errors import InvalidFilterError
from services.correlation_service import CorrelationService


def get_correlation_service(request: Request) -> CorrelationService:
    service = getattr(request.app.state, "correlation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service is starting")
    return service


def parse_filter(request: Request) -> CorrelationFilter:
    try:
        return CorrelationFilter.from_query(request.query_params)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
