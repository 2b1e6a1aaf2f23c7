"""Stat snapshot endpoints for dashboard charts."""

from fastapi import APIRouter, Depends, Query

from ..models import StatCreateRequest, StatResponse
from ..stats import StatsService, get_stats_service
from .auth import Reviewer

router = APIRouter(prefix="/stats", tags=["stats"])


@router.post("", response_model=StatResponse, status_code=201)
async def create_snapshot(
    request: StatCreateRequest,
    reviewer: Reviewer,
    service: StatsService = Depends(get_stats_service),
) -> StatResponse:
    snapshot = await service.record(request, submitted_by=reviewer.id)
    return StatResponse.model_validate(snapshot)


@router.get("", response_model=list[StatResponse])
async def list_snapshots(
    reviewer: Reviewer,
    limit: int = Query(100, ge=1, le=1000),
    service: StatsService = Depends(get_stats_service),
) -> list[StatResponse]:
    """Snapshots oldest first."""
    return [StatResponse.model_validate(row) for row in await service.history(limit)]


@router.get("/latest", response_model=StatResponse)
async def latest_snapshot(
    reviewer: Reviewer,
    service: StatsService = Depends(get_stats_service),
) -> StatResponse:
    return StatResponse.model_validate(await service.latest())
