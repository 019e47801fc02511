"""
siren_api.py — Municipal warning siren integration.

Delivery mechanism:
    • HTTP API call to the siren control system
    • The pattern sounded indicates severity
    • Reach is the population covered by the activated sirens

═══════════════════════════════════════════════════════════════════════════
SIREN PATTERNS
═══════════════════════════════════════════════════════════════════════════

    Pattern        Duration    Used for
    ──────────     ────────    ─────────────────────────────────
    WAIL           3 min       critical — evacuate
    STEADY_TONE    3 min       high — take cover / prepare
    PULSE          1 min       low / medium — attention signal

Siren control API:

    POST {SIREN_API_URL}
    {
        "pattern": "wail",
        "duration_seconds": 180,
        "area": "Pio Duran River",
        "alert_id": "ALR-3A7B...",
        "authorized_by": "disaster-alert-dispatch"
    }
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict

from backend.app.alerts.channels.base import ChannelMessage, ChannelOutcome, HttpChannelAdapter
from backend.app.alerts.models import Severity

logger = logging.getLogger(__name__)


class SirenPattern(str, Enum):
    STEADY_TONE = "steady_tone"
    WAIL        = "wail"
    PULSE       = "pulse"


_PATTERN_DURATION = {
    SirenPattern.WAIL: 180,
    SirenPattern.STEADY_TONE: 180,
    SirenPattern.PULSE: 60,
}


def select_pattern(severity: Severity) -> SirenPattern:
    if severity == Severity.CRITICAL:
        return SirenPattern.WAIL
    if severity == Severity.HIGH:
        return SirenPattern.STEADY_TONE
    return SirenPattern.PULSE


class SirenAdapter(HttpChannelAdapter):
    channel_id = "sirens"
    display_name = "Emergency Sirens"

    def build_payload(self, message: ChannelMessage, severity: Severity) -> Dict[str, Any]:
        pattern = select_pattern(severity)
        return {
            "pattern": pattern.value,
            "duration_seconds": _PATTERN_DURATION[pattern],
            "area": message.area,
            "alert_id": message.alert_id,
            "hazard": message.category,
            "authorized_by": "disaster-alert-dispatch",
        }

    def simulate(self, message: ChannelMessage, severity: Severity) -> ChannelOutcome:
        pattern = select_pattern(severity)
        logger.warning(
            "[SIREN] Sounding %s for %ds over %s | alert=%s",
            pattern.value, _PATTERN_DURATION[pattern], message.area or "all zones",
            message.alert_id,
            extra={"alert_id": message.alert_id, "channel": self.channel_id},
        )
        return ChannelOutcome.sent(self.audience, detail=f"simulated {pattern.value}")
