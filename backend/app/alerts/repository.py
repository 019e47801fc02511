"""
repository.py — Snapshot persistence for the trigger and alert stores.

The in-memory stores are authoritative while the service runs. A snapshot
writes their full contents (conditions, alerts and every delivery record)
in one transaction, replacing the previous snapshot; loading rebuilds the
stores on startup.

Tables:
    trigger_conditions   one row per condition, including fire history
    emergency_alerts     one row per alert; channels stored as JSON
    delivery_records     one row per channel send, ordered by (batch, seq)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, delete, select
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.alerts.models import (
    AlertCategory,
    AlertStatus,
    DeliveryRecord,
    DeliveryStatus,
    EmergencyAlert,
    Severity,
)
from backend.app.alerts.store import AlertStore
from backend.app.core.database import Base, Database
from backend.app.triggers.models import Comparator, TriggerCondition, TriggerType
from backend.app.triggers.store import TriggerStore

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# ORM rows
# ═══════════════════════════════════════════════════════════════════════════

class TriggerConditionRow(Base):
    __tablename__ = "trigger_conditions"

    condition_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    trigger_type: Mapped[str] = mapped_column(String(16))
    parameter: Mapped[str] = mapped_column(String(64))
    comparator: Mapped[str] = mapped_column(String(2))
    threshold: Mapped[float] = mapped_column(Float)
    unit: Mapped[str] = mapped_column(String(32), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    alert_category: Mapped[str] = mapped_column(String(16))
    severity: Mapped[str] = mapped_column(String(16))
    trigger_count: Mapped[int] = mapped_column(Integer, default=0)
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class EmergencyAlertRow(Base):
    __tablename__ = "emergency_alerts"

    alert_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    category: Mapped[str] = mapped_column(String(16))
    severity: Mapped[str] = mapped_column(String(16))
    title: Mapped[str] = mapped_column(String(300))
    body: Mapped[str] = mapped_column(Text)
    area: Mapped[str] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(16))
    priority: Mapped[int] = mapped_column(Integer)
    channels: Mapped[list] = mapped_column(JSON, default=list)
    issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    trigger_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class DeliveryRecordRow(Base):
    __tablename__ = "delivery_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(ForeignKey("emergency_alerts.alert_id", ondelete="CASCADE"))
    seq: Mapped[int] = mapped_column(Integer)
    batch: Mapped[int] = mapped_column(Integer)
    channel: Mapped[str] = mapped_column(String(64))
    channel_id: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16))
    reach: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════
# Conversions
# ═══════════════════════════════════════════════════════════════════════════

def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _condition_row(c: TriggerCondition) -> TriggerConditionRow:
    return TriggerConditionRow(
        condition_id=c.condition_id,
        name=c.name,
        trigger_type=c.trigger_type.value,
        parameter=c.parameter,
        comparator=c.comparator.value,
        threshold=c.threshold,
        unit=c.unit,
        is_active=c.is_active,
        alert_category=c.alert_category.value,
        severity=c.severity.value,
        trigger_count=c.trigger_count,
        last_triggered_at=c.last_triggered_at,
    )


def _condition_from_row(row: TriggerConditionRow) -> TriggerCondition:
    return TriggerCondition(
        condition_id=row.condition_id,
        name=row.name,
        trigger_type=TriggerType(row.trigger_type),
        parameter=row.parameter,
        comparator=Comparator(row.comparator),
        threshold=row.threshold,
        unit=row.unit,
        is_active=row.is_active,
        alert_category=AlertCategory(row.alert_category),
        severity=Severity(row.severity),
        trigger_count=row.trigger_count,
        last_triggered_at=_aware(row.last_triggered_at),
    )


def _alert_rows(a: EmergencyAlert) -> Tuple[EmergencyAlertRow, List[DeliveryRecordRow]]:
    alert_row = EmergencyAlertRow(
        alert_id=a.alert_id,
        category=a.category.value,
        severity=a.severity.value,
        title=a.title,
        body=a.body,
        area=a.area,
        status=a.status.value,
        priority=a.priority,
        channels=list(a.channels),
        issued_at=a.issued_at,
        expires_at=a.expires_at,
        trigger_id=a.trigger_id,
    )
    delivery_rows = [
        DeliveryRecordRow(
            alert_id=a.alert_id,
            seq=seq,
            batch=r.batch,
            channel=r.channel,
            channel_id=r.channel_id,
            status=r.status.value,
            reach=r.reach,
            recorded_at=r.recorded_at,
            error_message=r.error_message,
        )
        for seq, r in enumerate(a.sent_to)
    ]
    return alert_row, delivery_rows


def _alert_from_rows(row: EmergencyAlertRow, deliveries: List[DeliveryRecordRow]) -> EmergencyAlert:
    return EmergencyAlert(
        alert_id=row.alert_id,
        category=AlertCategory(row.category),
        severity=Severity(row.severity),
        title=row.title,
        body=row.body,
        area=row.area,
        status=AlertStatus(row.status),
        priority=row.priority,
        channels=list(row.channels or []),
        issued_at=_aware(row.issued_at),
        expires_at=_aware(row.expires_at),
        trigger_id=row.trigger_id,
        sent_to=[
            DeliveryRecord(
                channel=d.channel,
                channel_id=d.channel_id,
                status=DeliveryStatus(d.status),
                recorded_at=_aware(d.recorded_at),
                reach=d.reach,
                batch=d.batch,
                error_message=d.error_message,
            )
            for d in sorted(deliveries, key=lambda d: d.seq)
        ],
    )


# ═══════════════════════════════════════════════════════════════════════════
# Snapshot I/O
# ═══════════════════════════════════════════════════════════════════════════

async def save_snapshot(db: Database, trigger_store: TriggerStore, alert_store: AlertStore) -> Tuple[int, int]:
    """Replace the stored snapshot with the stores' current contents."""
    conditions = trigger_store.list()
    alerts = alert_store.list()

    async with db.session() as session:
        await session.execute(delete(DeliveryRecordRow))
        await session.execute(delete(EmergencyAlertRow))
        await session.execute(delete(TriggerConditionRow))
        session.add_all(_condition_row(c) for c in conditions)
        for alert in alerts:
            alert_row, delivery_rows = _alert_rows(alert)
            session.add(alert_row)
            session.add_all(delivery_rows)

    logger.info("Snapshot saved: %d trigger(s), %d alert(s)", len(conditions), len(alerts))
    return len(conditions), len(alerts)


async def load_snapshot(db: Database, trigger_store: TriggerStore, alert_store: AlertStore) -> Tuple[int, int]:
    """Load a snapshot into the (empty) stores. Returns (triggers, alerts) loaded."""
    async with db.session() as session:
        condition_rows = (await session.execute(select(TriggerConditionRow))).scalars().all()
        alert_rows = (await session.execute(select(EmergencyAlertRow))).scalars().all()
        delivery_rows = (await session.execute(select(DeliveryRecordRow))).scalars().all()

    for row in condition_rows:
        trigger_store.upsert(_condition_from_row(row))

    by_alert = {}
    for d in delivery_rows:
        by_alert.setdefault(d.alert_id, []).append(d)
    for row in alert_rows:
        alert_store.restore(_alert_from_rows(row, by_alert.get(row.alert_id, [])))

    logger.info("Snapshot loaded: %d trigger(s), %d alert(s)", len(condition_rows), len(alert_rows))
    return len(condition_rows), len(alert_rows)
