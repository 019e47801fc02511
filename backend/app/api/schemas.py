"""
Pydantic schemas for the trigger, sensor and alert APIs.

Separated from the route handlers so they are reusable across the codebase
(background workers, tests). Enum-valued fields are accepted as plain
strings and checked by the stores, so every rejection carries the same
VALIDATION_ERROR body whichever layer caught it.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from backend.app.alerts.models import DEFAULT_PRIORITY


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

class TriggerConditionIn(BaseModel):
    """Create or replace a trigger condition."""
    name: str = Field(..., examples=["Heavy Rainfall Alert"])
    trigger_type: str = Field(
        "weather", examples=["weather"],
        description="weather / seismic / water / air / manual",
    )
    parameter: str = Field(..., examples=["rainfall"])
    comparator: str = Field(">", examples=[">"], description="> < = >= <=")
    threshold: float = Field(..., examples=[50.0])
    unit: str = Field("", examples=["mm/hr"], description="Display only; never converted")
    is_active: bool = Field(True)
    alert_category: str = Field("general", examples=["flood"])
    severity: str = Field("medium", examples=["high"])


class TriggerToggle(BaseModel):
    is_active: bool


# ---------------------------------------------------------------------------
# Sensors
# ---------------------------------------------------------------------------

class SensorReadingIn(BaseModel):
    """One reading pushed by the sensor network."""
    sensor_id: str = Field(..., min_length=1, examples=["PAGASA-RG-014"])
    parameter: str = Field(..., min_length=1, examples=["rainfall"])
    value: float = Field(..., examples=[62.4])
    unit: str = Field("", examples=["mm/hr"])
    observed_at: Optional[datetime] = Field(
        None, description="Sensor timestamp; defaults to time of receipt",
    )
    location: str = Field("", examples=["Barangay San Isidro"])


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

class AlertCreate(BaseModel):
    """Compose a manual alert. It is stored as a draft unless ``dispatch`` is set."""
    title: str = Field(..., examples=["Flood Warning: Marikina River"])
    body: str = Field(..., examples=["River level above critical. Evacuate low-lying areas."])
    category: str = Field("general", examples=["flood"])
    severity: str = Field("medium", examples=["high"])
    area: Optional[str] = Field(None, examples=["Barangay Tumana"])
    channels: List[str] = Field(default_factory=list, examples=[["sms", "sirens"]])
    priority: int = Field(DEFAULT_PRIORITY, description="1 (lowest) to 5 (highest)")
    expires_at: Optional[datetime] = Field(None)
    expires_in_hours: Optional[float] = Field(
        None, gt=0, description="Alternative to expires_at, relative to now",
    )
    dispatch: bool = Field(False, description="Send immediately after creating")
