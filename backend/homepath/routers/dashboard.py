# backend/homepath/routers/dashboard.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..config import settings
from ..db import get_db
from ..schemas import ActivityOut, AnalyticsOut, OverviewOut, PropertyProgressOut
from ..services.activity_feed import MAX_DAYS, MAX_LIMIT, compute_recent_activity
from ..services.dashboard_rollups import compute_analytics, compute_overview
from ..services.progress_report import compute_progress
from ..services.store import PortfolioStore

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/overview", response_model=OverviewOut)
def dashboard_overview(db: Session = Depends(get_db), p=Depends(get_principal)):
    return compute_overview(PortfolioStore(db), user_id=p.user_id, now=datetime.utcnow())


@router.get("/recent-activity", response_model=list[ActivityOut])
def dashboard_recent_activity(
    limit: int = Query(default=settings.activity_default_limit, ge=1, le=MAX_LIMIT),
    days: int = Query(default=settings.activity_default_days, ge=1, le=MAX_DAYS),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    rows = compute_recent_activity(
        PortfolioStore(db),
        user_id=p.user_id,
        now=datetime.utcnow(),
        limit=limit,
        days=days,
    )
    return [ActivityOut.model_validate(r) for r in rows]


@router.get("/progress", response_model=list[PropertyProgressOut])
def dashboard_progress(db: Session = Depends(get_db), p=Depends(get_principal)):
    return compute_progress(PortfolioStore(db), user_id=p.user_id, now=datetime.utcnow())


@router.get("/analytics", response_model=AnalyticsOut)
def dashboard_analytics(
    period: str = Query(default=settings.analytics_default_period, description="1month|3months|6months|1year"),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    return compute_analytics(PortfolioStore(db), user_id=p.user_id, now=datetime.utcnow(), period=period)
