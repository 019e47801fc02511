"""
alert_service.py — Trigger-to-alert orchestration.

This is the central coordinator that:
    1. Accepts a sensor reading (dropping stale ones)
    2. Evaluates it against the active trigger conditions
    3. Auto-dispatches one alert per condition that fired
    4. Exposes the stores, channel registry and snapshot hooks to the API

═══════════════════════════════════════════════════════════════════════════
ORCHESTRATION FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  Sensor feed        │
    │  pushes a reading   │
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  1. SensorFeed      │  newest reading per (sensor, parameter)
    │     .accept         │  stale reading → ignored, nothing evaluated
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  2. TriggerEngine   │  comparator + cool-down
    │     .evaluate       │  → zero or more FireEvents
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  3. AlertDispatcher │  every alert opened (draft → active) first
    │     .open_fire_alert│  no channel for the category → failure entry
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  4. AlertDispatcher │  batches for all events run together
    │     .dispatch       │  → DispatchResult or failure entry per event
    └─────────────────────┘

Auto-dispatch can be switched off (AUTO_DISPATCH_ENABLED=false); fire
events are then reported but no alert is created.

Manual alerts follow the operator path instead: create a draft, dispatch
it, cancel it, each through its own route.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from backend.app.alerts.channels import build_channel_registry
from backend.app.alerts.channels.base import ChannelRegistry
from backend.app.alerts.dispatcher import AlertDispatcher
from backend.app.alerts.models import DispatchResult
from backend.app.alerts.repository import load_snapshot, save_snapshot
from backend.app.alerts.scheduler import ExpirySweeper
from backend.app.alerts.store import AlertStore
from backend.app.core.config import Settings
from backend.app.core.database import Database
from backend.app.core.errors import AlertSystemError
from backend.app.sensors.feed import SensorFeed
from backend.app.triggers.engine import TriggerEngine
from backend.app.triggers.models import FireEvent, SensorReading
from backend.app.triggers.seed import sample_conditions
from backend.app.triggers.store import TriggerStore

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """What one reading caused."""
    reading: SensorReading
    accepted: bool
    fired: List[FireEvent] = field(default_factory=list)
    dispatches: List[DispatchResult] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    def add_failure(
        self, event: FireEvent, exc: AlertSystemError, alert_id: Optional[str] = None,
    ) -> None:
        logger.error(
            "Auto-dispatch for trigger %s failed: %s", event.condition_id, exc.message,
            extra={
                "condition_id": event.condition_id,
                "alert_id": alert_id,
                "error_code": exc.error_code,
            },
        )
        self.failures.append({
            "condition_id": event.condition_id,
            "alert_id": alert_id,
            "error_code": exc.error_code,
            "message": exc.message,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reading": self.reading.to_dict(),
            "accepted": self.accepted,
            "fired": [e.to_dict() for e in self.fired],
            "dispatches": [d.to_dict() for d in self.dispatches],
            "failures": list(self.failures),
        }


class AlertService:
    """Holds the live stores and runs the reading → alert pipeline."""

    def __init__(
        self,
        *,
        trigger_store: TriggerStore,
        alert_store: AlertStore,
        feed: SensorFeed,
        engine: TriggerEngine,
        channels: ChannelRegistry,
        dispatcher: AlertDispatcher,
        sweeper: ExpirySweeper,
        database: Optional[Database] = None,
        auto_dispatch: bool = True,
    ):
        self.trigger_store = trigger_store
        self.alert_store = alert_store
        self.feed = feed
        self.engine = engine
        self.channels = channels
        self.dispatcher = dispatcher
        self.sweeper = sweeper
        self.database = database
        self.auto_dispatch = auto_dispatch

    async def ingest_reading(self, reading: SensorReading) -> IngestReport:
        """
        Accept one reading, evaluate it and auto-dispatch every fire.

        Each fire is handled on its own: an event whose alert cannot be
        created or dispatched is listed under ``failures`` and the other
        events still go out. Alerts are opened (created and activated)
        before the first await, so the engine already sees them as active
        when the next reading is evaluated. Their channel fan-outs then run
        concurrently.
        """
        if not self.feed.accept(reading):
            return IngestReport(reading=reading, accepted=False)

        report = IngestReport(reading=reading, accepted=True)
        report.fired = self.engine.evaluate(reading)
        if not report.fired:
            return report

        if not self.auto_dispatch:
            logger.info(
                "%d trigger(s) fired; auto-dispatch disabled", len(report.fired),
                extra={"sensor_id": reading.sensor_id, "parameter": reading.parameter},
            )
            return report

        opened = []
        for event in report.fired:
            try:
                opened.append((event, self.dispatcher.open_fire_alert(event)))
            except AlertSystemError as exc:
                report.add_failure(event, exc)

        results = await asyncio.gather(
            *(self.dispatcher.dispatch(alert.alert_id) for _, alert in opened),
            return_exceptions=True,
        )
        for (event, alert), result in zip(opened, results):
            if isinstance(result, AlertSystemError):
                report.add_failure(event, result, alert_id=alert.alert_id)
            elif isinstance(result, BaseException):
                raise result
            else:
                report.dispatches.append(result)
        return report

    # ═══════════════════════════════════════════════════════════════════
    # Startup / shutdown
    # ═══════════════════════════════════════════════════════════════════

    async def start(self, *, seed: bool = True) -> None:
        """Restore (or seed) the stores and start the expiry sweeper."""
        restored = 0
        if self.database is not None:
            await self.database.init()
            restored, _ = await load_snapshot(self.database, self.trigger_store, self.alert_store)
        if seed and restored == 0 and len(self.trigger_store) == 0:
            for condition in sample_conditions():
                self.trigger_store.upsert(condition)
            logger.info("Seeded %d sample trigger condition(s)", len(self.trigger_store))
        await self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        if self.database is not None:
            await self.snapshot()
            await self.database.close()

    async def snapshot(self, *_: Any) -> None:
        if self.database is not None:
            await save_snapshot(self.database, self.trigger_store, self.alert_store)


def build_alert_service(settings: Settings) -> AlertService:
    """Wire the full pipeline from settings."""
    trigger_store = TriggerStore()
    alert_store = AlertStore()
    channels = build_channel_registry(settings)
    database = (
        Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        if settings.PERSISTENCE_ENABLED else None
    )

    engine = TriggerEngine(
        trigger_store,
        alert_store=alert_store,
        cooldown=timedelta(seconds=settings.TRIGGER_COOLDOWN_SECONDS),
    )
    dispatcher = AlertDispatcher(
        alert_store,
        channels,
        category_channels=settings.CATEGORY_CHANNELS,
        auto_alert_ttl=(
            timedelta(hours=settings.AUTO_ALERT_TTL_HOURS)
            if settings.AUTO_ALERT_TTL_HOURS else None
        ),
    )

    service = AlertService(
        trigger_store=trigger_store,
        alert_store=alert_store,
        feed=SensorFeed(),
        engine=engine,
        channels=channels,
        dispatcher=dispatcher,
        sweeper=ExpirySweeper(alert_store, interval_seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS),
        database=database,
        auto_dispatch=settings.AUTO_DISPATCH_ENABLED,
    )
    service.sweeper.on_expired = service.snapshot if database is not None else None
    return service
