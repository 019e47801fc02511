"""
engine.py — TriggerEngine: evaluates sensor readings against conditions.

═══════════════════════════════════════════════════════════════════════════
EVALUATION
═══════════════════════════════════════════════════════════════════════════

    reading(parameter, value)
          │
          ▼
    active conditions with the same parameter
          │  comparator.holds(value, threshold)   (no unit conversion)
          ▼
    cool-down gate ──► suppressed (no event, no state change)
          │
          ▼
    TriggerStore.record_fire ──► FireEvent

Several conditions on one parameter may fire from the same reading; each
produces its own FireEvent. A reading nobody watches is a no-op.

═══════════════════════════════════════════════════════════════════════════
COOL-DOWN
═══════════════════════════════════════════════════════════════════════════

A condition that stays past its threshold would otherwise fire on every
reading. It is held back when either:

    1. it fired less than ``cooldown`` ago; checked atomically by
       ``TriggerStore.record_fire`` so racing readings cannot both fire, or
    2. an alert generated from it is still ACTIVE in the AlertStore.

Once the alert expires or is cancelled and the cool-down window has passed,
the condition is armed again.

With a zero cool-down only rule 2 applies, and it sees the alert only once
that alert is ACTIVE. ``AlertService.ingest_reading`` opens the alert before
its first await, so readings sharing one event loop cannot slip in between.
Readings evaluated from other threads or processes can: ``evaluate`` and
the activation are not one atomic step, so a zero cool-down there may fire
the same condition twice. Keep a non-zero cool-down in that setup.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, TYPE_CHECKING

from backend.app.core.errors import NotFoundError
from backend.app.triggers.models import FireEvent, SensorReading, TriggerCondition
from backend.app.triggers.store import TriggerStore

if TYPE_CHECKING:
    from backend.app.alerts.store import AlertStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TriggerEngine:
    """Stateless evaluator over a TriggerStore (and optionally an AlertStore)."""

    def __init__(
        self,
        trigger_store: TriggerStore,
        *,
        alert_store: Optional["AlertStore"] = None,
        cooldown: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.trigger_store = trigger_store
        self.alert_store = alert_store
        self.cooldown = cooldown
        self._clock = clock

    def _has_active_alert(self, condition: TriggerCondition) -> bool:
        if self.alert_store is None:
            return False
        return self.alert_store.find_active_for_trigger(condition.condition_id) is not None

    def evaluate(self, reading: SensorReading) -> List[FireEvent]:
        """
        Evaluate one reading and return the FireEvents it caused.

        An empty list means nothing fired.
        """
        candidates = self.trigger_store.list(active_only=True, parameter=reading.parameter)
        if not candidates:
            logger.debug(
                "No active conditions watch %s", reading.parameter,
                extra={"sensor_id": reading.sensor_id, "parameter": reading.parameter},
            )
            return []

        events: List[FireEvent] = []
        for condition in candidates:
            if not condition.matches(reading.value):
                continue

            if self._has_active_alert(condition):
                logger.info(
                    "Trigger %s held: its alert is still active", condition.condition_id,
                    extra={"condition_id": condition.condition_id},
                )
                continue

            fired_at = self._clock()
            try:
                recorded = self.trigger_store.record_fire(
                    condition.condition_id, fired_at, cooldown=self.cooldown,
                )
            except NotFoundError:
                # deleted between list() and record_fire()
                continue
            if recorded is None:
                continue

            event = FireEvent(
                condition_id=condition.condition_id,
                condition_name=condition.name,
                category=condition.alert_category,
                severity=condition.severity,
                parameter=reading.parameter,
                value=reading.value,
                threshold=condition.threshold,
                comparator=condition.comparator,
                unit=condition.unit or reading.unit,
                fired_at=fired_at,
                sensor_id=reading.sensor_id,
                location=reading.location,
            )
            events.append(event)
            logger.warning(
                "Trigger %s fired: %s %s %s %s (count=%d)",
                condition.condition_id, reading.parameter, reading.value,
                condition.comparator.value, condition.threshold,
                recorded.trigger_count,
                extra={
                    "condition_id": condition.condition_id,
                    "sensor_id": reading.sensor_id,
                    "parameter": reading.parameter,
                },
            )

        return events
