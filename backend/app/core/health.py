"""
Health check aggregation — deep health probe for all subsystems.

Checks:
    • Trigger store (conditions loaded, how many active)
    • Alert store (alerts held, how many active)
    • Channel adapters (registered, simulated vs. live provider)
    • Expiry sweeper (background task running)
    • Snapshot database connectivity (when persistence is enabled)

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
    - Monitoring dashboards
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.config import Settings

if TYPE_CHECKING:
    from backend.app.alerts.alert_service import AlertService

logger = logging.getLogger(__name__)

# Channels every municipal deployment is expected to have
REQUIRED_CHANNELS = ("sms", "sirens")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = ""
    environment: str = ""
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


async def check_trigger_store(service: "AlertService") -> ComponentHealth:
    comp = ComponentHealth(name="trigger_store")
    start = time.monotonic()
    conditions = service.trigger_store.list()
    active = sum(1 for c in conditions if c.is_active)
    comp.details = {"conditions": len(conditions), "active": active}
    if active == 0:
        comp.status = HealthStatus.DEGRADED
        comp.message = "No active trigger conditions; readings cannot fire alerts"
    else:
        comp.message = f"{active} active condition(s)"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_alert_store(service: "AlertService") -> ComponentHealth:
    comp = ComponentHealth(name="alert_store")
    start = time.monotonic()
    summary = service.alert_store.summary()
    comp.details = {
        "alerts": summary["total_alerts"],
        "active": summary["active_alerts"],
    }
    comp.message = "Alert store available"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_channels(service: "AlertService") -> ComponentHealth:
    comp = ComponentHealth(name="channels")
    start = time.monotonic()
    registered = service.channels.ids()
    simulated = [
        cid for cid in registered
        if getattr(service.channels.get(cid), "simulated", False)
    ]
    missing = [cid for cid in REQUIRED_CHANNELS if cid not in service.channels]

    comp.details = {"registered": registered, "simulated": simulated, "missing": missing}
    if not registered:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "No channel adapters registered"
    elif missing:
        comp.status = HealthStatus.DEGRADED
        comp.message = f"Missing channels: {', '.join(missing)}"
    elif simulated:
        comp.message = f"{len(simulated)} channel(s) in simulation mode"
    else:
        comp.message = "All channels live"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_sweeper(service: "AlertService") -> ComponentHealth:
    comp = ComponentHealth(name="expiry_sweeper")
    sweeper = service.sweeper
    comp.details = {
        "interval_seconds": sweeper.interval_seconds,
        "last_sweep_at": sweeper.last_sweep_at.isoformat() if sweeper.last_sweep_at else None,
        "expired_total": sweeper.total_expired,
    }
    if sweeper.running:
        comp.message = "Running"
    else:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Not running; alerts will not expire automatically"
    return comp


async def check_database(service: "AlertService") -> ComponentHealth:
    comp = ComponentHealth(name="database")
    start = time.monotonic()
    db = service.database
    if db is None:
        comp.message = "Persistence disabled (in-memory only)"
        return comp

    comp.details = {"url": db.display_url}
    try:
        await db.ping()
        comp.message = "Snapshot database reachable"
    except SQLAlchemyError as e:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
        logger.error("Database health check failed: %s", e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(service: "AlertService", settings: Settings) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    checks = [
        check_trigger_store(service),
        check_alert_store(service),
        check_channels(service),
        check_sweeper(service),
        check_database(service),
    ]

    for coro in checks:
        report.components.append(await coro)

    # Aggregate status
    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
