"""
Analytics API endpoints (daily / weekly / monthly / yearly buckets)
"""
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tacohut.api.deps import get_db, get_settings
from tacohut.application.analytics import AnalyticsQueryService, RepairAnalyticsUseCase
from tacohut.config import Settings
from tacohut.domain.errors import InvalidPeriod
from tacohut.readmodels.projection import AggregateView


router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("")
def get_overview(
    limit: int | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """All four periods' buckets, newest first"""
    data = AnalyticsQueryService(db, settings).overview(limit=limit)
    return {"status": "success", "data": data, "count": len(data)}


@router.post("/repair")
def repair_analytics(db: Session = Depends(get_db)) -> Dict[str, int]:
    """Recalculate net profit of every bucket where it went stale"""
    return {"repaired": RepairAnalyticsUseCase(db).execute()}


@router.get("/{period}", response_model=List[AggregateView])
def list_period(
    period: str,
    limit: int | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Buckets of one period, newest first"""
    try:
        return AnalyticsQueryService(db, settings).list_aggregates(period, limit=limit)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{period}/bucket", response_model=AggregateView)
def get_bucket(
    period: str,
    date: str | None = Query(default=None, description="YYYY-MM-DD, default today"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """The bucket of `period` containing `date`"""
    as_of = None
    if date:
        try:
            as_of = datetime.strptime(date, "%Y-%m-%d").date()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")

    try:
        view = AnalyticsQueryService(db, settings).get_aggregate(period, as_of)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))

    if view is None:
        raise HTTPException(status_code=404, detail=f"No {period} analytics found for the specified date")
    return view
