"""
dispatcher.py — AlertDispatcher: fans an alert out to its channels.

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  1. Lifecycle gate  │  draft → active (before any send)
    │                     │  expired / cancelled → InvalidTransitionError
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  2. Concurrent      │  one task per selected channel
    │     fan-out         │  each bounded by that channel's timeout
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  3. Commit batch    │  all records appended in one store call
    │                     │  once every channel resolved or timed out
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  4. DispatchResult  │  success / partial / failed + per-channel list
    └─────────────────────┘

═══════════════════════════════════════════════════════════════════════════
FAILURE POLICY
═══════════════════════════════════════════════════════════════════════════

Best-effort broadcast: one channel that sent makes the dispatch a success.
A timeout, an unregistered channel id, or an exception escaping an adapter
each become a FAILED record for that channel only. The alert stays ACTIVE
even when every channel failed; the attempt is on record and the operator
may resend, which appends a new batch.

Cancelling an alert while a batch is in flight does not stop it: its
records are still committed. Cancellation blocks the next dispatch.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from backend.app.alerts.channels.base import ChannelMessage, ChannelOutcome, ChannelRegistry
from backend.app.alerts.models import (
    PRIORITY_BY_SEVERITY,
    AlertCategory,
    AlertStatus,
    DeliveryRecord,
    DeliveryStatus,
    DispatchResult,
    EmergencyAlert,
)
from backend.app.alerts.store import AlertStore
from backend.app.core.errors import InvalidTransitionError, ValidationError
from backend.app.triggers.models import FireEvent

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fmt(number: float) -> str:
    return f"{number:g}"


def compose_fire_alert(event: FireEvent) -> tuple:
    """Generated (title, body) for an auto-dispatched alert."""
    unit = f" {event.unit}" if event.unit else ""
    title = f"{event.severity.label}: {event.condition_name}"
    where = f" at {event.location}" if event.location else ""
    body = (
        f"Automated alert. {event.parameter} reading of {_fmt(event.value)}{unit}{where} "
        f"met the condition {event.comparator.value} {_fmt(event.threshold)}{unit} "
        f"({event.condition_name}). Follow instructions from local authorities."
    )
    return title, body


class AlertDispatcher:
    """
    Sends alerts through registered channel adapters and records outcomes.

    Parameters
    ----------
    alert_store : AlertStore
    channels : ChannelRegistry
    category_channels : dict
        Alert category → ordered channel ids, used for auto-dispatch.
    auto_alert_ttl : timedelta | None
        Lifetime given to auto-dispatched alerts; None means no expiry.
    """

    def __init__(
        self,
        alert_store: AlertStore,
        channels: ChannelRegistry,
        *,
        category_channels: Optional[Dict[str, List[str]]] = None,
        auto_alert_ttl: Optional[timedelta] = timedelta(hours=12),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.alert_store = alert_store
        self.channels = channels
        self.category_channels = dict(category_channels or {})
        self.auto_alert_ttl = auto_alert_ttl
        self._clock = clock

    # ═══════════════════════════════════════════════════════════════════
    # Single channel
    # ═══════════════════════════════════════════════════════════════════

    async def _send_via(
        self,
        channel_id: str,
        message: ChannelMessage,
        alert: EmergencyAlert,
    ) -> DeliveryRecord:
        adapter = self.channels.get(channel_id)
        if adapter is None:
            logger.error(
                "No adapter registered for channel '%s'", channel_id,
                extra={"alert_id": alert.alert_id, "channel": channel_id},
            )
            return DeliveryRecord(
                channel=channel_id,
                channel_id=channel_id,
                status=DeliveryStatus.FAILED,
                recorded_at=self._clock(),
                error_message=f"No adapter registered for channel '{channel_id}'",
            )

        try:
            outcome = await asyncio.wait_for(
                adapter.send(message, alert.severity),
                timeout=adapter.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Channel %s timed out after %.1fs for alert %s",
                channel_id, adapter.timeout_seconds, alert.alert_id,
                extra={"alert_id": alert.alert_id, "channel": channel_id},
            )
            outcome = ChannelOutcome.failed(f"timed out after {adapter.timeout_seconds:g}s")
        except Exception as exc:
            # adapters are contracted not to raise; a bug in one must not sink the batch
            logger.exception(
                "Channel %s raised while sending alert %s", channel_id, alert.alert_id,
                extra={"alert_id": alert.alert_id, "channel": channel_id},
            )
            outcome = ChannelOutcome.failed(f"adapter error: {exc}")

        return DeliveryRecord(
            channel=adapter.display_name or channel_id,
            channel_id=channel_id,
            status=outcome.status,
            recorded_at=self._clock(),
            reach=outcome.reach,
            error_message=outcome.detail if outcome.status == DeliveryStatus.FAILED else None,
        )

    # ═══════════════════════════════════════════════════════════════════
    # Dispatch
    # ═══════════════════════════════════════════════════════════════════

    async def dispatch(self, alert_id: str) -> DispatchResult:
        """
        Dispatch (or resend) an alert to every selected channel.

        Raises
        ------
        NotFoundError
            Unknown alert id.
        InvalidTransitionError
            The alert is expired or cancelled.
        ValidationError
            The alert has no channels selected.
        """
        alert = self.alert_store.get(alert_id)
        if alert.status.is_terminal:
            raise InvalidTransitionError(alert_id, alert.status.value, "dispatch")
        if not alert.channels:
            raise ValidationError(
                f"Alert {alert_id} has no channels selected", field="channels",
            )
        if alert.status == AlertStatus.DRAFT:
            alert = self.alert_store.activate(alert_id)

        started = self._clock()
        message = ChannelMessage(
            alert_id=alert.alert_id,
            title=alert.title,
            body=alert.body,
            category=alert.category.value,
            area=alert.area,
            priority=alert.priority,
        )

        logger.info(
            "Dispatching alert %s [%s] to %s",
            alert.alert_id, alert.severity.value, alert.channels,
            extra={"alert_id": alert.alert_id},
        )

        records: Sequence[DeliveryRecord] = await asyncio.gather(*(
            self._send_via(channel_id, message, alert) for channel_id in alert.channels
        ))
        committed = self.alert_store.append_deliveries(alert.alert_id, records)

        result = DispatchResult(
            alert_id=alert.alert_id,
            batch=committed[0].batch,
            records=committed,
            started_at=started,
            completed_at=self._clock(),
        )
        log = logger.error if not result.success else logger.info
        log(
            "Alert %s batch %d: %s (%d/%d sent, reach=%d)",
            alert.alert_id, result.batch, result.outcome.value,
            result.sent_count, len(committed), result.reach,
            extra={
                "alert_id": alert.alert_id,
                "batch": result.batch,
                "outcome": result.outcome.value,
                "reach": result.reach,
            },
        )
        return result

    # ═══════════════════════════════════════════════════════════════════
    # Auto-dispatch
    # ═══════════════════════════════════════════════════════════════════

    def channels_for(self, category: AlertCategory) -> List[str]:
        return list(
            self.category_channels.get(category.value)
            or self.category_channels.get(AlertCategory.GENERAL.value)
            or []
        )

    def alert_from_fire_event(self, event: FireEvent) -> EmergencyAlert:
        """
        Create the DRAFT alert for a fired condition.

        Raises ValidationError, and stores nothing, when neither the event's
        category nor ``general`` maps to any channel.
        """
        channels = self.channels_for(event.category)
        if not channels:
            raise ValidationError(
                f"No channels configured for category '{event.category.value}'",
                field="channels",
                category=event.category.value,
                condition_id=event.condition_id,
            )
        title, body = compose_fire_alert(event)
        expires_at = self._clock() + self.auto_alert_ttl if self.auto_alert_ttl else None
        return self.alert_store.create(
            title=title,
            body=body,
            category=event.category,
            severity=event.severity,
            area=event.location,
            channels=channels,
            priority=PRIORITY_BY_SEVERITY[event.severity],
            expires_at=expires_at,
            trigger_id=event.condition_id,
        )

    def open_fire_alert(self, event: FireEvent) -> EmergencyAlert:
        """
        Create and activate the alert for a fired condition without awaiting.

        Once this returns, the condition is held by its ACTIVE alert, so a
        reading evaluated later on the same event loop cannot fire it again.
        """
        alert = self.alert_store.activate(self.alert_from_fire_event(event).alert_id)
        logger.warning(
            "Auto-dispatching alert %s for trigger %s",
            alert.alert_id, event.condition_id,
            extra={"alert_id": alert.alert_id, "condition_id": event.condition_id},
        )
        return alert

    async def dispatch_fire_event(self, event: FireEvent) -> DispatchResult:
        return await self.dispatch(self.open_fire_alert(event).alert_id)
