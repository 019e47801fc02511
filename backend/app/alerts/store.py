"""
store.py — AlertStore: canonical owner of EmergencyAlert records.

Enforces the lifecycle state machine and the append-only delivery history.
Every mutation of one alert (transition or delivery append) runs under that
alert's lock; different alerts never contend. Reads hand out deep copies so
nothing outside the store can edit an alert in place.

Transition table:

    operation     from        to
    ─────────     ────        ──
    activate      draft       active
    expire        active      expired
    cancel        active      cancelled

Anything else raises InvalidTransitionError and leaves the alert untouched.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from backend.app.alerts.models import (
    DEFAULT_AREA,
    DEFAULT_PRIORITY,
    MAX_PRIORITY,
    MIN_PRIORITY,
    AlertCategory,
    AlertStatus,
    DeliveryRecord,
    DeliveryStatus,
    EmergencyAlert,
    Severity,
)
from backend.app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from backend.app.core.locks import KeyedLock

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Unrecognised {field_name} '{value}'. "
            f"Must be one of: {[m.value for m in enum_cls]}",
            field=field_name,
        )


def _ordered_unique(items: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for item in items:
        if item and item not in seen:
            seen[item] = None
    return list(seen)


class AlertStore:
    """In-memory alert store with per-alert serialisation."""

    def __init__(self, *, clock=_utcnow):
        self._alerts: Dict[str, EmergencyAlert] = {}
        self._guard = threading.RLock()
        self._locks = KeyedLock()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._alerts)

    def _require(self, alert_id: str) -> EmergencyAlert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("EmergencyAlert", alert_id=alert_id)
        return alert

    # ═══════════════════════════════════════════════════════════════════
    # Creation
    # ═══════════════════════════════════════════════════════════════════

    def create(
        self,
        *,
        title: str,
        body: str,
        category: Any = AlertCategory.GENERAL,
        severity: Any = Severity.MEDIUM,
        area: Optional[str] = None,
        channels: Sequence[str] = (),
        priority: int = DEFAULT_PRIORITY,
        expires_at: Optional[datetime] = None,
        trigger_id: Optional[str] = None,
    ) -> EmergencyAlert:
        """
        Create a DRAFT alert.

        Raises
        ------
        ValidationError
            Empty title or body, priority outside 1–5, unknown category or
            severity, or an expiry that is not in the future.
        """
        if not title or not title.strip():
            raise ValidationError("Alert title is required", field="title")
        if not body or not body.strip():
            raise ValidationError("Alert body is required", field="body")
        if isinstance(priority, bool) or not isinstance(priority, int) \
                or not MIN_PRIORITY <= priority <= MAX_PRIORITY:
            raise ValidationError(
                f"Priority must be an integer {MIN_PRIORITY}–{MAX_PRIORITY}, got {priority!r}",
                field="priority",
            )

        now = self._clock()
        if expires_at is not None and expires_at <= now:
            raise ValidationError("Expiry must be in the future", field="expires_at")

        alert = EmergencyAlert(
            category=_coerce(AlertCategory, category, "category"),
            severity=_coerce(Severity, severity, "severity"),
            title=title.strip(),
            body=body.strip(),
            area=(area or "").strip() or DEFAULT_AREA,
            issued_at=now,
            expires_at=expires_at,
            status=AlertStatus.DRAFT,
            channels=_ordered_unique(channels),
            priority=priority,
            trigger_id=trigger_id,
        )

        with self._guard:
            self._alerts[alert.alert_id] = alert

        logger.info(
            "Drafted alert %s [%s/%s] %s",
            alert.alert_id, alert.category.value, alert.severity.value, alert.title,
            extra={"alert_id": alert.alert_id},
        )
        return copy.deepcopy(alert)

    def restore(self, alert: EmergencyAlert) -> EmergencyAlert:
        """Insert an alert exactly as persisted (snapshot reload only)."""
        if alert.status != AlertStatus.DRAFT and not alert.sent_to:
            raise ValidationError(
                f"Alert {alert.alert_id} is {alert.status.value} but has no deliveries",
                field="sent_to",
            )
        stored = copy.deepcopy(alert)
        with self._guard:
            self._alerts[stored.alert_id] = stored
        return copy.deepcopy(stored)

    # ═══════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════

    def get(self, alert_id: str) -> EmergencyAlert:
        with self._locks(alert_id):
            return copy.deepcopy(self._require(alert_id))

    def list(self, status: Optional[AlertStatus] = None) -> List[EmergencyAlert]:
        """All alerts, newest first, optionally filtered by status."""
        with self._guard:
            alerts = list(self._alerts.values())
        if status is not None:
            alerts = [a for a in alerts if a.status == status]
        alerts.sort(
            key=lambda a: a.issued_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return [copy.deepcopy(a) for a in alerts]

    def find_active_for_trigger(self, trigger_id: str) -> Optional[EmergencyAlert]:
        with self._guard:
            alerts = list(self._alerts.values())
        for alert in alerts:
            if alert.trigger_id == trigger_id and alert.status == AlertStatus.ACTIVE:
                return copy.deepcopy(alert)
        return None

    # ═══════════════════════════════════════════════════════════════════
    # Lifecycle transitions
    # ═══════════════════════════════════════════════════════════════════

    def _transition(
        self,
        alert_id: str,
        *,
        allowed_from: AlertStatus,
        to: AlertStatus,
        action: str,
    ) -> EmergencyAlert:
        with self._locks(alert_id):
            alert = self._require(alert_id)
            if alert.status != allowed_from:
                raise InvalidTransitionError(alert_id, alert.status.value, action)
            alert.status = to
            if to == AlertStatus.ACTIVE and alert.issued_at is None:
                alert.issued_at = self._clock()
            snapshot = copy.deepcopy(alert)

        logger.info(
            "Alert %s %s → %s", alert_id, allowed_from.value, to.value,
            extra={"alert_id": alert_id},
        )
        return snapshot

    def activate(self, alert_id: str) -> EmergencyAlert:
        return self._transition(
            alert_id, allowed_from=AlertStatus.DRAFT, to=AlertStatus.ACTIVE, action="activate",
        )

    def expire(self, alert_id: str) -> EmergencyAlert:
        return self._transition(
            alert_id, allowed_from=AlertStatus.ACTIVE, to=AlertStatus.EXPIRED, action="expire",
        )

    def cancel(self, alert_id: str) -> EmergencyAlert:
        """Cancel an ACTIVE alert. Operator confirmation is the caller's job."""
        return self._transition(
            alert_id, allowed_from=AlertStatus.ACTIVE, to=AlertStatus.CANCELLED, action="cancel",
        )

    def expire_due(self, now: Optional[datetime] = None) -> List[str]:
        """Expire every ACTIVE alert whose expiry has passed; return their ids."""
        now = now or self._clock()
        with self._guard:
            candidates = [a.alert_id for a in self._alerts.values() if a.is_due_to_expire(now)]

        expired: List[str] = []
        for alert_id in candidates:
            with self._locks(alert_id):
                alert = self._alerts.get(alert_id)
                # re-check: it may have been cancelled since the scan
                if alert is None or not alert.is_due_to_expire(now):
                    continue
                alert.status = AlertStatus.EXPIRED
            expired.append(alert_id)
            logger.info("Alert %s expired", alert_id, extra={"alert_id": alert_id})
        return expired

    # ═══════════════════════════════════════════════════════════════════
    # Delivery history
    # ═══════════════════════════════════════════════════════════════════

    def append_deliveries(
        self,
        alert_id: str,
        records: Sequence[DeliveryRecord],
    ) -> List[DeliveryRecord]:
        """
        Append one dispatch batch atomically and return it, stamped with its
        batch number.

        Allowed for any non-draft alert: a batch already in flight when the
        alert was cancelled or expired is still recorded.
        """
        if not records:
            raise ValidationError("A delivery batch needs at least one record", field="records")

        with self._locks(alert_id):
            alert = self._require(alert_id)
            if alert.status == AlertStatus.DRAFT:
                raise InvalidTransitionError(alert_id, alert.status.value, "record deliveries for")
            batch = alert.batch_count + 1
            stamped = [dataclasses.replace(r, batch=batch) for r in records]
            alert.sent_to.extend(stamped)

        logger.info(
            "Alert %s batch %d recorded: %d channel(s)", alert_id, batch, len(stamped),
            extra={"alert_id": alert_id, "batch": batch},
        )
        return stamped

    # ═══════════════════════════════════════════════════════════════════
    # Statistics
    # ═══════════════════════════════════════════════════════════════════

    def summary(self) -> Dict[str, Any]:
        """Dashboard figures: active alerts, reach, delivery success rate."""
        alerts = self.list()
        by_status = Counter(a.status.value for a in alerts)
        records = [r for a in alerts for r in a.sent_to]
        sent = sum(1 for r in records if r.status == DeliveryStatus.SENT)
        failed = sum(1 for r in records if r.status == DeliveryStatus.FAILED)
        pending = sum(1 for r in records if r.status == DeliveryStatus.PENDING)
        active = [a for a in alerts if a.status == AlertStatus.ACTIVE]

        return {
            "total_alerts": len(alerts),
            "by_status": {s.value: by_status.get(s.value, 0) for s in AlertStatus},
            "active_alerts": len(active),
            "active_reach": sum(a.reach for a in active),
            "total_reach": sum(a.reach for a in alerts),
            "deliveries": {
                "total": len(records),
                "sent": sent,
                "failed": failed,
                "pending": pending,
            },
            "delivery_success_rate": f"{(sent / len(records)) if records else 0.0:.1%}",
        }
