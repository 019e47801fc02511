"""
FastAPI route: trigger condition management.

Provides endpoints to:
    GET    /api/v1/triggers                   — list conditions
    GET    /api/v1/triggers/catalog           — recognised parameters per type
    GET    /api/v1/triggers/{id}              — one condition
    POST   /api/v1/triggers                   — create a condition
    PUT    /api/v1/triggers/{id}              — replace a definition
    PATCH  /api/v1/triggers/{id}/active       — enable / disable
    DELETE /api/v1/triggers/{id}?confirm=true — delete
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.app.alerts.alert_service import AlertService
from backend.app.api.deps import get_service, require_confirmation
from backend.app.api.schemas import TriggerConditionIn, TriggerToggle
from backend.app.triggers.catalog import catalog_as_dict
from backend.app.triggers.models import TriggerCondition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/triggers", tags=["triggers"])


def _to_condition(body: TriggerConditionIn, condition_id: Optional[str] = None) -> TriggerCondition:
    fields = body.model_dump()
    if condition_id is not None:
        fields["condition_id"] = condition_id
    return TriggerCondition(**fields)


@router.get("", summary="List trigger conditions")
async def list_triggers(
    active_only: bool = Query(False),
    parameter: Optional[str] = Query(None, examples=["rainfall"]),
    service: AlertService = Depends(get_service),
):
    conditions = service.trigger_store.list(active_only=active_only, parameter=parameter)
    return {
        "count": len(conditions),
        "active": sum(1 for c in conditions if c.is_active),
        "triggers": [c.to_dict() for c in conditions],
    }


@router.get("/catalog", summary="Recognised sensor parameters per trigger type")
async def parameter_catalog():
    return {"trigger_types": catalog_as_dict()}


@router.get("/{condition_id}", summary="Get one trigger condition")
async def get_trigger(condition_id: str, service: AlertService = Depends(get_service)):
    return service.trigger_store.get(condition_id).to_dict()


@router.post("", status_code=201, summary="Create a trigger condition")
async def create_trigger(body: TriggerConditionIn, service: AlertService = Depends(get_service)):
    return service.trigger_store.upsert(_to_condition(body)).to_dict()


@router.put(
    "/{condition_id}",
    summary="Replace a trigger definition",
    description="Fire history (count and last fired) is kept.",
)
async def update_trigger(
    condition_id: str,
    body: TriggerConditionIn,
    service: AlertService = Depends(get_service),
):
    service.trigger_store.get(condition_id)
    return service.trigger_store.upsert(_to_condition(body, condition_id)).to_dict()


@router.patch("/{condition_id}/active", summary="Enable or disable a trigger")
async def toggle_trigger(
    condition_id: str,
    body: TriggerToggle,
    service: AlertService = Depends(get_service),
):
    return service.trigger_store.set_active(condition_id, body.is_active).to_dict()


@router.delete(
    "/{condition_id}",
    summary="Delete a trigger condition",
    description="An active condition is only deleted with confirm=true.",
)
async def delete_trigger(
    condition_id: str,
    confirm: bool = Query(False),
    service: AlertService = Depends(get_service),
):
    condition = service.trigger_store.get(condition_id)
    if condition.is_active:
        require_confirmation(confirm, "Deleting an active trigger", condition_id=condition_id)
    deleted = service.trigger_store.delete(condition_id)
    logger.warning(
        "Operator deleted trigger %s (%s)", condition_id, deleted.name,
        extra={"condition_id": condition_id},
    )
    return {"deleted": condition_id}
