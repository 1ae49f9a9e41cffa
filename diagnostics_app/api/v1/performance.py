from typing import List

from fastapi import APIRouter, Depends, Query, status

from diagnostics_app.dependencies import get_current_user_id, get_performance_service
from diagnostics_app.schemas.performance import PerformanceResponse, PerformanceSubmit
from diagnostics_app.services.performance_service import PerformanceService

router = APIRouter(prefix="/performance", tags=["performance"])


@router.post("", response_model=PerformanceResponse, status_code=status.HTTP_201_CREATED)
async def submit_diagnostic(
    diagnostic: PerformanceSubmit,
    user_id: str = Depends(get_current_user_id),
    performance_service: PerformanceService = Depends(get_performance_service)
):
    """Store a snapshot; issues are derived from fixed thresholds"""
    metrics = diagnostic.metrics.model_dump(exclude_none=True)
    return await performance_service.submit(user_id, diagnostic.scan_name, metrics)


@router.get("", response_model=List[PerformanceResponse])
async def list_diagnostics(
    mine: bool = False,
    user_id: str = Depends(get_current_user_id),
    performance_service: PerformanceService = Depends(get_performance_service)
):
    return await performance_service.list_diagnostics(user_id if mine else None)


@router.get("/trends", response_model=List[PerformanceResponse])
async def performance_trends(
    days: int = Query(30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    performance_service: PerformanceService = Depends(get_performance_service)
):
    return await performance_service.trends(days)
