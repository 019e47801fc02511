"""
seed.py — Sample trigger conditions loaded on a fresh deployment.

The counts carry over prior fire history; none of them bypass the
cool-down rules once loaded.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from backend.app.alerts.models import AlertCategory, Severity
from backend.app.triggers.models import Comparator, TriggerCondition, TriggerType


def sample_conditions() -> List[TriggerCondition]:
    return [
        TriggerCondition(
            condition_id="TRG-RAINFALL",
            name="Heavy Rainfall Alert",
            trigger_type=TriggerType.WEATHER,
            parameter="rainfall",
            comparator=Comparator.GT,
            threshold=50.0,
            unit="mm/hour",
            alert_category=AlertCategory.FLOOD,
            severity=Severity.HIGH,
            trigger_count=3,
            last_triggered_at=datetime(2025, 1, 20, 14, 30, tzinfo=timezone.utc),
        ),
        TriggerCondition(
            condition_id="TRG-WIND",
            name="Strong Wind Warning",
            trigger_type=TriggerType.WEATHER,
            parameter="wind_speed",
            comparator=Comparator.GE,
            threshold=60.0,
            unit="km/h",
            alert_category=AlertCategory.TYPHOON,
            severity=Severity.HIGH,
            trigger_count=1,
        ),
        TriggerCondition(
            condition_id="TRG-QUAKE",
            name="Earthquake Detection",
            trigger_type=TriggerType.SEISMIC,
            parameter="magnitude",
            comparator=Comparator.GE,
            threshold=5.0,
            unit="Richter",
            alert_category=AlertCategory.EARTHQUAKE,
            severity=Severity.CRITICAL,
        ),
        TriggerCondition(
            condition_id="TRG-RIVER",
            name="River Level Critical",
            trigger_type=TriggerType.WATER,
            parameter="water_level",
            comparator=Comparator.GT,
            threshold=8.5,
            unit="meters",
            alert_category=AlertCategory.FLOOD,
            severity=Severity.CRITICAL,
            trigger_count=2,
        ),
        TriggerCondition(
            condition_id="TRG-HEAT",
            name="High Temperature Alert",
            trigger_type=TriggerType.WEATHER,
            parameter="temperature",
            comparator=Comparator.GT,
            threshold=35.0,
            unit="°C",
            is_active=False,
            alert_category=AlertCategory.HEAT,
            severity=Severity.MEDIUM,
            trigger_count=5,
        ),
    ]
