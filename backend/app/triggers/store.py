"""
store.py — TriggerStore: canonical owner of TriggerCondition records.

All reads return copies; every change goes through an operation here.
Mutations of one condition are serialised on that condition's lock, so
concurrent ``record_fire`` calls for the same id each add exactly one to
``trigger_count``.

Validation happens before any state is touched: a rejected ``upsert``
leaves the previous definition in place.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import math
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from backend.app.alerts.models import AlertCategory, Severity
from backend.app.core.errors import NotFoundError, ValidationError
from backend.app.core.locks import KeyedLock
from backend.app.triggers.catalog import is_recognised
from backend.app.triggers.models import Comparator, TriggerCondition, TriggerType

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        valid = [m.value for m in enum_cls]
        raise ValidationError(
            f"Unrecognised {field_name} '{value}'. Must be one of: {valid}",
            field=field_name,
        )


def validate_condition(condition: TriggerCondition) -> TriggerCondition:
    """
    Check a condition and return a normalised copy.

    Raises
    ------
    ValidationError
        Empty name, non-numeric or non-finite threshold, unknown enum value,
        or a parameter outside the catalog for the trigger type.
    """
    if not condition.name or not condition.name.strip():
        raise ValidationError("Trigger name is required", field="name")

    threshold = condition.threshold
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ValidationError("Threshold must be a number", field="threshold")
    if not math.isfinite(threshold):
        raise ValidationError(
            f"Threshold must be finite, got {threshold}", field="threshold",
        )

    trigger_type = _coerce_enum(TriggerType, condition.trigger_type, "trigger_type")
    comparator = _coerce_enum(Comparator, condition.comparator, "comparator")
    severity = _coerce_enum(Severity, condition.severity, "severity")
    category = _coerce_enum(AlertCategory, condition.alert_category, "alert_category")

    if not is_recognised(trigger_type, condition.parameter):
        raise ValidationError(
            f"Parameter '{condition.parameter}' is not recognised for "
            f"{trigger_type.value} triggers",
            field="parameter",
            trigger_type=trigger_type.value,
        )

    if condition.trigger_count < 0:
        raise ValidationError("trigger_count cannot be negative", field="trigger_count")

    return dataclasses.replace(
        condition,
        name=condition.name.strip(),
        threshold=float(threshold),
        trigger_type=trigger_type,
        comparator=comparator,
        severity=severity,
        alert_category=category,
    )


class TriggerStore:
    """In-memory store of trigger conditions with per-id serialisation."""

    def __init__(self, conditions: Iterable[TriggerCondition] = ()):
        self._conditions: Dict[str, TriggerCondition] = {}
        self._guard = threading.RLock()
        self._locks = KeyedLock()
        for condition in conditions:
            self.upsert(condition)

    def __len__(self) -> int:
        return len(self._conditions)

    def _require(self, condition_id: str) -> TriggerCondition:
        condition = self._conditions.get(condition_id)
        if condition is None:
            raise NotFoundError("TriggerCondition", condition_id=condition_id)
        return condition

    # ── Reads ──

    def list(
        self,
        *,
        active_only: bool = False,
        parameter: Optional[str] = None,
    ) -> List[TriggerCondition]:
        with self._guard:
            conditions = list(self._conditions.values())
        if active_only:
            conditions = [c for c in conditions if c.is_active]
        if parameter is not None:
            conditions = [c for c in conditions if c.parameter == parameter]
        return [copy.deepcopy(c) for c in conditions]

    def get(self, condition_id: str) -> TriggerCondition:
        return copy.deepcopy(self._require(condition_id))

    # ── Writes ──

    def upsert(self, condition: TriggerCondition) -> TriggerCondition:
        """
        Create or replace a condition definition.

        Replacing keeps the stored fire history; only the definition changes.
        A new condition keeps whatever history it carries, which is how seeded
        and restored conditions arrive.
        """
        normalised = validate_condition(condition)
        cid = normalised.condition_id

        with self._locks(cid):
            with self._guard:
                existing = self._conditions.get(cid)
                if existing is not None:
                    normalised.trigger_count = existing.trigger_count
                    normalised.last_triggered_at = existing.last_triggered_at
                self._conditions[cid] = normalised

        logger.info(
            "%s trigger %s (%s %s %s)",
            "Updated" if existing else "Created",
            cid, normalised.parameter, normalised.comparator.value,
            normalised.threshold,
            extra={"condition_id": cid},
        )
        return copy.deepcopy(normalised)

    def set_active(self, condition_id: str, active: bool) -> TriggerCondition:
        with self._locks(condition_id):
            condition = self._require(condition_id)
            condition.is_active = bool(active)
            snapshot = copy.deepcopy(condition)
        logger.info(
            "Trigger %s %s", condition_id, "activated" if active else "deactivated",
            extra={"condition_id": condition_id},
        )
        return snapshot

    def delete(self, condition_id: str) -> TriggerCondition:
        """Remove a condition. Operator confirmation is the caller's job."""
        with self._locks(condition_id):
            with self._guard:
                condition = self._require(condition_id)
                del self._conditions[condition_id]
        self._locks.discard(condition_id)
        logger.info("Deleted trigger %s", condition_id, extra={"condition_id": condition_id})
        return condition

    def record_fire(
        self,
        condition_id: str,
        fired_at: datetime,
        *,
        cooldown: Optional[timedelta] = None,
    ) -> Optional[TriggerCondition]:
        """
        Record one fire: ``trigger_count += 1`` and ``last_triggered_at = fired_at``.

        When ``cooldown`` is given the check and the increment happen under
        the same lock; a fire closer than ``cooldown`` to the previous one is
        refused and None is returned with the record unchanged.
        """
        with self._locks(condition_id):
            condition = self._require(condition_id)
            last = condition.last_triggered_at
            if cooldown is not None and last is not None and fired_at - last < cooldown:
                logger.debug(
                    "Trigger %s cooling down (last fire %s)", condition_id, last.isoformat(),
                    extra={"condition_id": condition_id},
                )
                return None
            condition.trigger_count += 1
            condition.last_triggered_at = fired_at
            return copy.deepcopy(condition)
