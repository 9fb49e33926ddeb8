from __future__ import annotations

from fastapi import APIRouter, Depends

from api.requests import CorrelationFilter
from api.responses import CorrelationPage, EventCount, FilterOptions
from api.routes.common import get_correlation_service, parse_filter
from api.routes.exception import handle_exceptions
from services.correlation_service import CorrelationService

router = APIRouter(tags=["Correlations"])


@router.get(
    "/correlations",
    response_model=CorrelationPage,
    summary="One page of correlation summaries, newest first",
)
@handle_exceptions
async def list_correlations(
    spec: CorrelationFilter = Depends(parse_filter),
    service: CorrelationService = Depends(get_correlation_service),
) -> CorrelationPage:
    return await service.list_correlations(spec)


@router.get(
    "/correlations/count",
    response_model=EventCount,
    summary="Number of matching events in the time window",
)
@handle_exceptions
async def count_events(
    spec: CorrelationFilter = Depends(parse_filter),
    service: CorrelationService = Depends(get_correlation_service),
) -> EventCount:
    return await service.count_events(spec)


@router.get(
    "/filters",
    response_model=FilterOptions,
    summary="Distinct filter values seen in the time window",
)
@handle_exceptions
async def filter_options(
    spec: CorrelationFilter = Depends(parse_filter),
    service: CorrelationService = Depends(get_correlation_service),
) -> FilterOptions:
    return await service.filter_options(spec)
