"""
FastAPI route: sensor reading ingestion.

    POST /api/v1/sensors/readings   — push one reading through the pipeline
    GET  /api/v1/sensors/readings   — latest reading per sensor and parameter
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from backend.app.alerts.alert_service import AlertService
from backend.app.api.deps import get_service
from backend.app.api.schemas import SensorReadingIn
from backend.app.triggers.models import SensorReading

router = APIRouter(prefix="/api/v1/sensors", tags=["sensors"])


@router.post(
    "/readings",
    summary="Ingest a sensor reading",
    description=(
        "Evaluates the reading against active trigger conditions and "
        "auto-dispatches an alert for each one that fires. A reading older "
        "than the latest one from the same sensor and parameter is ignored."
    ),
)
async def ingest_reading(body: SensorReadingIn, service: AlertService = Depends(get_service)):
    observed_at = body.observed_at or datetime.now(timezone.utc)
    if observed_at.tzinfo is None:
        observed_at = observed_at.replace(tzinfo=timezone.utc)

    reading = SensorReading(
        sensor_id=body.sensor_id,
        parameter=body.parameter,
        value=body.value,
        unit=body.unit,
        observed_at=observed_at,
        location=body.location,
    )
    report = await service.ingest_reading(reading)
    return report.to_dict()


@router.get("/readings", summary="Latest readings")
async def latest_readings(service: AlertService = Depends(get_service)):
    readings = service.feed.snapshot()
    return {"count": len(readings), "readings": [r.to_dict() for r in readings]}
