"""
models.py — Shared data structures for the alert lifecycle and dispatch.

Defines:
    • Severity        — four-step severity scale shared with trigger conditions
    • AlertCategory   — hazard category an alert is about
    • AlertStatus     — lifecycle state (draft → active → expired | cancelled)
    • DeliveryStatus  — per-channel delivery outcome
    • DispatchOutcome — aggregate outcome of one dispatch batch
    • EmergencyAlert  — the alert record owned by AlertStore
    • DeliveryRecord  — immutable outcome of one channel send
    • DispatchResult  — what the dispatcher reports for one batch

═══════════════════════════════════════════════════════════════════════════
ALERT LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    create ──► DRAFT ──activate──► ACTIVE ──expire──► EXPIRED
                                     │
                                     └──cancel───► CANCELLED

EXPIRED and CANCELLED are terminal: every further transition is rejected.
Delivery records are only ever appended, one batch per dispatch attempt,
and the sequence is empty exactly while the alert is still a draft.

═══════════════════════════════════════════════════════════════════════════
SEVERITY → PRIORITY (auto-dispatch)
═══════════════════════════════════════════════════════════════════════════

    Severity     Label        Priority
    ────────     ─────────    ────────
    low          Advisory     2
    medium       Watch        3
    high         Warning      4
    critical     Emergency    5
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class Severity(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"

    @property
    def label(self) -> str:
        return SEVERITY_LABELS[self]


class AlertCategory(str, Enum):
    TYPHOON    = "typhoon"
    EARTHQUAKE = "earthquake"
    FLOOD      = "flood"
    FIRE       = "fire"
    LANDSLIDE  = "landslide"
    TSUNAMI    = "tsunami"
    HEAT       = "heat"
    GENERAL    = "general"


class AlertStatus(str, Enum):
    DRAFT     = "draft"
    ACTIVE    = "active"
    EXPIRED   = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.EXPIRED, AlertStatus.CANCELLED)


class DeliveryStatus(str, Enum):
    """Outcome of one channel send."""
    PENDING = "pending"   # accepted by the provider, not yet confirmed
    SENT    = "sent"      # delivered; reach is known
    FAILED  = "failed"    # transport error, timeout or missing adapter


class DispatchOutcome(str, Enum):
    SUCCESS = "success"   # every channel sent
    PARTIAL = "partial"   # at least one sent, at least one did not
    FAILED  = "failed"    # nothing sent


SEVERITY_LABELS: Dict[Severity, str] = {
    Severity.LOW: "Advisory",
    Severity.MEDIUM: "Watch",
    Severity.HIGH: "Warning",
    Severity.CRITICAL: "Emergency",
}

PRIORITY_BY_SEVERITY: Dict[Severity, int] = {
    Severity.LOW: 2,
    Severity.MEDIUM: 3,
    Severity.HIGH: 4,
    Severity.CRITICAL: 5,
}

MIN_PRIORITY = 1
MAX_PRIORITY = 5
DEFAULT_PRIORITY = 3
DEFAULT_AREA = "Municipality-wide"


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

def _generate_id() -> str:
    return f"ALR-{uuid.uuid4().hex[:12].upper()}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass(frozen=True)
class DeliveryRecord:
    """
    Outcome of sending one alert through one channel.

    Written once by the dispatcher and never edited afterwards; a resend
    produces a new record in a new batch.

    Attributes
    ----------
    channel : str
        Display name of the channel ("SMS Alerts", "Emergency Sirens").
    channel_id : str
        Registry id of the channel ("sms", "sirens").
    status : DeliveryStatus
    recorded_at : datetime
        When the outcome was recorded.
    reach : int | None
        Audience size reported by the channel; only set when status is SENT.
    batch : int
        1-based dispatch attempt this record belongs to.
    error_message : str | None
        Failure detail for FAILED records.
    """
    channel: str
    channel_id: str
    status: DeliveryStatus
    recorded_at: datetime = field(default_factory=_now)
    reach: Optional[int] = None
    batch: int = 1
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status != DeliveryStatus.SENT and self.reach is not None:
            object.__setattr__(self, "reach", None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "channel_id": self.channel_id,
            "status": self.status.value,
            "recorded_at": self.recorded_at.isoformat(),
            "reach": self.reach,
            "batch": self.batch,
            "error_message": self.error_message,
        }


@dataclass
class EmergencyAlert:
    """
    An emergency alert and its delivery history.

    ``sent_to`` is owned by AlertStore; callers receive copies and change
    state only through store operations.
    """
    category: AlertCategory = AlertCategory.GENERAL
    severity: Severity = Severity.MEDIUM
    title: str = ""
    body: str = ""
    area: str = DEFAULT_AREA
    alert_id: str = field(default_factory=_generate_id)
    issued_at: Optional[datetime] = field(default_factory=_now)
    expires_at: Optional[datetime] = None
    status: AlertStatus = AlertStatus.DRAFT
    channels: List[str] = field(default_factory=list)
    sent_to: List[DeliveryRecord] = field(default_factory=list)
    priority: int = DEFAULT_PRIORITY
    trigger_id: Optional[str] = None

    @property
    def reach(self) -> int:
        """Audience reached: sum of reach over SENT records."""
        return sum(r.reach or 0 for r in self.sent_to if r.status == DeliveryStatus.SENT)

    @property
    def batch_count(self) -> int:
        return max((r.batch for r in self.sent_to), default=0)

    def is_due_to_expire(self, now: datetime) -> bool:
        return (
            self.status == AlertStatus.ACTIVE
            and self.expires_at is not None
            and now > self.expires_at
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "category": self.category.value,
            "severity": self.severity.value,
            "severity_label": self.severity.label,
            "title": self.title,
            "body": self.body,
            "area": self.area,
            "issued_at": _iso(self.issued_at),
            "expires_at": _iso(self.expires_at),
            "status": self.status.value,
            "channels": list(self.channels),
            "sent_to": [r.to_dict() for r in self.sent_to],
            "reach": self.reach,
            "priority": self.priority,
            "trigger_id": self.trigger_id,
        }


@dataclass
class DispatchResult:
    """Aggregated outcome of one dispatch batch."""
    alert_id: str
    batch: int
    records: List[DeliveryRecord] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeliveryStatus.SENT)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeliveryStatus.FAILED)

    @property
    def outcome(self) -> DispatchOutcome:
        if self.sent_count == 0:
            return DispatchOutcome.FAILED
        if self.sent_count == len(self.records):
            return DispatchOutcome.SUCCESS
        return DispatchOutcome.PARTIAL

    @property
    def success(self) -> bool:
        """Best-effort broadcast: true once any channel sent."""
        return self.sent_count > 0

    @property
    def reach(self) -> int:
        return sum(r.reach or 0 for r in self.records if r.status == DeliveryStatus.SENT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "batch": self.batch,
            "outcome": self.outcome.value,
            "success": self.success,
            "reach": self.reach,
            "sent": self.sent_count,
            "failed": self.failed_count,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "records": [r.to_dict() for r in self.records],
        }
