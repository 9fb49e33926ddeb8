"""
Health check route to verify store connectivity.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.responses import HealthStatus
from api.routes.common import get_correlation_service
from api.routes.exception import handle_exceptions
from services.correlation_service import CorrelationService
from store.client import is_using_fallback

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
@handle_exceptions
async def health(
    service: CorrelationService = Depends(get_correlation_service),
) -> Union[HealthStatus, JSONResponse]:
    status = await service.health()
    if not status.available or status.status == "red":
        return JSONResponse(
            status_code=503,
            content=status.model_dump(mode="json", by_alias=True),
        )
    status.metrics_store = "fallback" if is_using_fallback() else "redis"
    return status
