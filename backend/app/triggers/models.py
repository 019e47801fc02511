"""
models.py — Trigger conditions, sensor readings and fire events.

A TriggerCondition compares one sensor parameter against a numeric
threshold. When a SensorReading for that parameter satisfies the
comparator (and the condition is not cooling down) the engine records the
fire on the condition and emits a FireEvent for the alert dispatcher.

Units are display-only. A condition in metres evaluated against a reading
in feet is a configuration error that is not detected at runtime.
"""

from __future__ import annotations

import operator
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from backend.app.alerts.models import AlertCategory, Severity


class TriggerType(str, Enum):
    """Monitoring domain a condition belongs to."""
    WEATHER = "weather"
    SEISMIC = "seismic"
    WATER   = "water"
    AIR     = "air"
    MANUAL  = "manual"


class Comparator(str, Enum):
    GT = ">"
    LT = "<"
    EQ = "="
    GE = ">="
    LE = "<="

    def holds(self, value: float, threshold: float) -> bool:
        """Apply the comparator to ``(value, threshold)``."""
        return _COMPARATOR_FUNCS[self](value, threshold)


_COMPARATOR_FUNCS: Dict[Comparator, Callable[[float, float], bool]] = {
    Comparator.GT: operator.gt,
    Comparator.LT: operator.lt,
    Comparator.EQ: operator.eq,
    Comparator.GE: operator.ge,
    Comparator.LE: operator.le,
}


def _generate_id() -> str:
    return f"TRG-{uuid.uuid4().hex[:10].upper()}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TriggerCondition:
    """
    A named rule comparing a sensor parameter to a threshold.

    ``trigger_count`` and ``last_triggered_at`` are fire history: they are
    written only by ``TriggerStore.record_fire``.
    """
    name: str
    parameter: str
    threshold: float
    trigger_type: TriggerType = TriggerType.WEATHER
    comparator: Comparator = Comparator.GT
    unit: str = ""
    is_active: bool = True
    alert_category: AlertCategory = AlertCategory.GENERAL
    severity: Severity = Severity.MEDIUM
    condition_id: str = field(default_factory=_generate_id)
    trigger_count: int = 0
    last_triggered_at: Optional[datetime] = None

    def matches(self, value: float) -> bool:
        return self.comparator.holds(value, self.threshold)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition_id": self.condition_id,
            "name": self.name,
            "trigger_type": self.trigger_type.value,
            "parameter": self.parameter,
            "comparator": self.comparator.value,
            "threshold": self.threshold,
            "unit": self.unit,
            "is_active": self.is_active,
            "alert_category": self.alert_category.value,
            "severity": self.severity.value,
            "trigger_count": self.trigger_count,
            "last_triggered_at": (
                self.last_triggered_at.isoformat() if self.last_triggered_at else None
            ),
        }


@dataclass(frozen=True)
class SensorReading:
    """One timestamped measurement pushed by the sensor feed."""
    sensor_id: str
    parameter: str
    value: float
    unit: str = ""
    observed_at: datetime = field(default_factory=_now)
    location: str = ""

    @property
    def key(self) -> tuple:
        return (self.sensor_id, self.parameter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "parameter": self.parameter,
            "value": self.value,
            "unit": self.unit,
            "observed_at": self.observed_at.isoformat(),
            "location": self.location,
        }


@dataclass(frozen=True)
class FireEvent:
    """Emitted once per condition that fired on a reading."""
    condition_id: str
    condition_name: str
    category: AlertCategory
    severity: Severity
    parameter: str
    value: float
    threshold: float
    comparator: Comparator
    unit: str
    fired_at: datetime
    sensor_id: str = ""
    location: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition_id": self.condition_id,
            "condition_name": self.condition_name,
            "category": self.category.value,
            "severity": self.severity.value,
            "parameter": self.parameter,
            "value": self.value,
            "threshold": self.threshold,
            "comparator": self.comparator.value,
            "unit": self.unit,
            "fired_at": self.fired_at.isoformat(),
            "sensor_id": self.sensor_id,
            "location": self.location,
        }
