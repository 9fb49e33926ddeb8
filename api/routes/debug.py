from __future__ import annotations

from fastapi import APIRouter, Depends

from api.requests import CorrelationFilter
from api.responses import QueryPreview
from api.routes.common import get_correlation_service, parse_filter
from api.routes.exception import handle_exceptions
from services.correlation_service import CorrelationService

router = APIRouter(tags=["Debug"])


@router.get(
    "/debug/query-preview",
    response_model=QueryPreview,
    summary="Show the store query a correlation request would run, without running it",
)
@handle_exceptions
async def query_preview(
    spec: CorrelationFilter = Depends(parse_filter),
    service: CorrelationService = Depends(get_correlation_service),
) -> QueryPreview:
    return service.preview(spec)
