"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    BatchResult,
    ProcessedReading,
    Reading,
    SensorStatistics,
    TrendAnalysis,
)
from services.analytics import AnalyticsEngine
from services.processor import ProcessingPipeline, build_default_pipeline

router = APIRouter()


def get_pipeline() -> ProcessingPipeline:
    return build_default_pipeline()


def get_analytics(
    pipeline: ProcessingPipeline = Depends(get_pipeline),
) -> AnalyticsEngine:
    return pipeline.insights.analytics


@router.post(
    "/api/ingestion/single",
    response_model=ProcessedReading,
    summary="Process a single sensor reading.",
)
def ingest_single(
    reading: Reading,
    pipeline: ProcessingPipeline = Depends(get_pipeline),
) -> ProcessedReading:
    return pipeline.process_reading(reading)


@router.post(
    "/api/ingestion/batch",
    response_model=BatchResult,
    summary="Process a batch of sensor readings with per-item outcomes.",
)
def ingest_batch(
    readings: List[Reading],
    pipeline: ProcessingPipeline = Depends(get_pipeline),
) -> BatchResult:
    return pipeline.process_batch(readings)


@router.get(
    "/api/fields/{field_id}/trend",
    response_model=TrendAnalysis,
    summary="Trend of a sensor type's recent readings for a field.",
)
async def get_trend(
    field_id: str,
    sensor_type: str = Query(..., min_length=1),
    analytics: AnalyticsEngine = Depends(get_analytics),
) -> TrendAnalysis:
    trend = analytics.get_trend(field_id, sensor_type)
    if trend is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No trend available for {sensor_type!r} on field {field_id!r}.",
        )
    return trend


@router.get(
    "/api/fields/{field_id}/statistics",
    response_model=SensorStatistics,
    summary="Summary statistics of a sensor type's readings for a field.",
)
async def get_statistics(
    field_id: str,
    sensor_type: str = Query(..., min_length=1),
    analytics: AnalyticsEngine = Depends(get_analytics),
) -> SensorStatistics:
    statistics = analytics.get_statistics(field_id, sensor_type)
    if statistics is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No readings of {sensor_type!r} stored for field {field_id!r}.",
        )
    return statistics


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
