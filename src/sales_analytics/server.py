"""FastAPI server exposing the sales analytics engine."""
from __future__ import annotations

import logging
import os
from datetime import date, datetime
from typing import Any, Dict, Literal, Optional, Tuple

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from .config import load_engine_config
from .growth import classify_growth, growth_rate
from .models import AnalyticsSnapshot, DateRangeSelection
from .repository import SnapshotRepository, build_repository_from_env
from .service import SalesAnalyticsService

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(title="Sales Analytics API", version="0.1.0")
repository: Optional[SnapshotRepository] = build_repository_from_env()
engine_config = load_engine_config()

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Service for the most recent repository snapshot, reused while its id is unchanged.
_cached_service: Optional[Tuple[str, SalesAnalyticsService]] = None


class DashboardRequest(BaseModel):
    date_filter: Literal["all", "today", "week", "month", "year", "custom"] = "week"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    now: Optional[datetime] = None
    snapshot: Optional[Dict[str, Any]] = None

    @field_validator("custom_end")
    @classmethod
    def _validate_range(cls, end: Optional[date], info: ValidationInfo) -> Optional[date]:
        start = info.data.get("custom_start")
        if start and end and end < start:
            raise ValueError("custom_end must not be before custom_start")
        return end


class GrowthRequest(BaseModel):
    current: float = Field(ge=0)
    previous: float = Field(ge=0)


class DashboardResponse(BaseModel):
    data: Dict[str, Any]
    source: str


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/analytics/dashboard", response_model=DashboardResponse)
async def dashboard_endpoint(request: DashboardRequest) -> DashboardResponse:
    service, source = _load_service(request)
    selection = DateRangeSelection(
        date_filter=request.date_filter,
        custom_start=request.custom_start,
        custom_end=request.custom_end,
    )
    result = service.build(selection, now=request.now)
    return DashboardResponse(data=result.as_dict(), source=source)


@app.post("/analytics/growth")
async def growth_endpoint(request: GrowthRequest) -> Dict[str, Any]:
    result = growth_rate(request.current, request.previous)
    data = result.as_dict()
    data["trend"] = classify_growth(result, threshold=engine_config.growth_threshold)
    return data


def _load_service(request: DashboardRequest) -> Tuple[SalesAnalyticsService, str]:
    global _cached_service

    if request.snapshot is not None:
        return SalesAnalyticsService(AnalyticsSnapshot.from_payload(request.snapshot), engine_config), "inline"

    if repository is None:
        raise HTTPException(
            status_code=500,
            detail=(
                "ANALYTICS_SNAPSHOT_DATABASE_URL is not configured; "
                "supply the analytics snapshot in the request body."
            ),
        )

    snapshot = repository.load()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No analytics snapshot has been captured yet.")

    snapshot_id = snapshot.snapshot_id or ""
    if _cached_service is None or _cached_service[0] != snapshot_id:
        logger.info("Loaded analytics snapshot %s", snapshot_id)
        _cached_service = (snapshot_id, SalesAnalyticsService(snapshot, engine_config))
    return _cached_service[1], "database"
