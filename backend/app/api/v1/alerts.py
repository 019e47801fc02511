"""
FastAPI route: emergency alert lifecycle and dispatch.

Provides endpoints to:
    POST /api/v1/alerts                          — compose a draft (optionally send)
    GET  /api/v1/alerts                          — alert history, ?status= filter
    GET  /api/v1/alerts/channels                 — registered channels
    GET  /api/v1/alerts/summary                  — dashboard statistics
    GET  /api/v1/alerts/{id}                     — one alert with deliveries
    POST /api/v1/alerts/{id}/dispatch            — send or resend
    POST /api/v1/alerts/{id}/cancel?confirm=true — cancel an active alert
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.app.alerts.alert_service import AlertService
from backend.app.alerts.models import AlertStatus
from backend.app.api.deps import get_service, require_confirmation
from backend.app.api.schemas import AlertCreate
from backend.app.core.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


def _parse_status(value: Optional[str]) -> Optional[AlertStatus]:
    if value is None:
        return None
    try:
        return AlertStatus(value.lower())
    except ValueError:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {[s.value for s in AlertStatus]}",
            field="status",
        )


def _resolve_expiry(body: AlertCreate) -> Optional[datetime]:
    if body.expires_at is not None and body.expires_in_hours is not None:
        raise ValidationError(
            "Give either expires_at or expires_in_hours, not both", field="expires_at",
        )
    if body.expires_in_hours is not None:
        return datetime.now(timezone.utc) + timedelta(hours=body.expires_in_hours)
    if body.expires_at is not None and body.expires_at.tzinfo is None:
        return body.expires_at.replace(tzinfo=timezone.utc)
    return body.expires_at


@router.post("", status_code=201, summary="Compose an alert")
async def create_alert(body: AlertCreate, service: AlertService = Depends(get_service)):
    # A draft that cannot be sent is not stored when sending was requested
    if body.dispatch and not body.channels:
        raise ValidationError(
            "Select at least one channel to dispatch on create", field="channels",
        )
    alert = service.alert_store.create(
        title=body.title,
        body=body.body,
        category=body.category,
        severity=body.severity,
        area=body.area,
        channels=body.channels,
        priority=body.priority,
        expires_at=_resolve_expiry(body),
    )
    if not body.dispatch:
        return {"alert": alert.to_dict(), "dispatch": None}

    result = await service.dispatcher.dispatch(alert.alert_id)
    return {
        "alert": service.alert_store.get(alert.alert_id).to_dict(),
        "dispatch": result.to_dict(),
    }


@router.get("", summary="Alert history")
async def list_alerts(
    status: Optional[str] = Query(None, examples=["active"]),
    service: AlertService = Depends(get_service),
):
    alerts = service.alert_store.list(status=_parse_status(status))
    return {"count": len(alerts), "alerts": [a.to_dict() for a in alerts]}


@router.get("/channels", summary="List registered channels")
async def list_channels(service: AlertService = Depends(get_service)):
    return {
        "channels": service.channels.describe(),
        "category_defaults": service.dispatcher.category_channels,
    }


@router.get("/summary", summary="Alert statistics")
async def alert_summary(service: AlertService = Depends(get_service)):
    return service.alert_store.summary()


@router.get("/{alert_id}", summary="Get one alert")
async def get_alert(alert_id: str, service: AlertService = Depends(get_service)):
    return service.alert_store.get(alert_id).to_dict()


@router.post(
    "/{alert_id}/dispatch",
    summary="Dispatch or resend an alert",
    description=(
        "Activates a draft, then sends to every selected channel concurrently. "
        "Resending an active alert appends a new delivery batch."
    ),
)
async def dispatch_alert(alert_id: str, service: AlertService = Depends(get_service)):
    result = await service.dispatcher.dispatch(alert_id)
    return result.to_dict()


@router.post("/{alert_id}/cancel", summary="Cancel an active alert")
async def cancel_alert(
    alert_id: str,
    confirm: bool = Query(False),
    service: AlertService = Depends(get_service),
):
    require_confirmation(confirm, "Cancelling an alert", alert_id=alert_id)
    alert = service.alert_store.cancel(alert_id)
    logger.warning("Operator cancelled alert %s", alert_id, extra={"alert_id": alert_id})
    return alert.to_dict()
