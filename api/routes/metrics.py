from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from api.responses import PerformanceReport
from api.routes.common import get_correlation_service
from api.routes.exception import handle_exceptions
from config import DEFAULT_METRICS_TIME_RANGE, METRICS_SLOWEST_DEFAULT
from engine.errors import InvalidFilterError
from engine.timerange import parse_time_range
from services.correlation_service import CorrelationService

router = APIRouter(tags=["Metrics"])


@router.get(
    "/metrics",
    response_model=PerformanceReport,
    summary="Query performance over a recent window plus cluster stats",
)
@handle_exceptions
async def performance_metrics(
    time_range: str = Query(default=DEFAULT_METRICS_TIME_RANGE, alias="timeRange"),
    limit: int = Query(default=METRICS_SLOWEST_DEFAULT, ge=0, le=100),
    service: CorrelationService = Depends(get_correlation_service),
) -> PerformanceReport:
    try:
        window_seconds = parse_time_range(time_range)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return await service.performance(window_seconds, slowest=limit)
