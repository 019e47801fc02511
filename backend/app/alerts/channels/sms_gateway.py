"""
sms_gateway.py — SMS delivery channel via gateway integration.

Delivery mechanism:
    • HTTP API to an SMS gateway that fans out to registered numbers
    • Payload: ≤160 chars (GSM 7-bit), one segment per broadcast
    • Gateway response carries the number of handsets reached

═══════════════════════════════════════════════════════════════════════════
MESSAGE TEMPLATING
═══════════════════════════════════════════════════════════════════════════

    "[{SEVERITY LABEL}] {title}: {body}. Ref:{alert ref}"

    Example:
        "[EMERGENCY] River Level Critical: water_level 9.0 meters exceeds
         8.5 meters at Pio Duran River. Ref:3A7B9C01"

The body is truncated with "..." to keep the whole message in one segment.
"""

from __future__ import annotations

from typing import Any, Dict

from backend.app.alerts.channels.base import ChannelMessage, HttpChannelAdapter
from backend.app.alerts.models import Severity

SMS_MAX_GSM7 = 160


def format_sms(message: ChannelMessage, severity: Severity) -> str:
    """Format the SMS text within the 160-char GSM limit."""
    prefix = f"[{severity.label.upper()}] {message.title}: "
    suffix = f" Ref:{message.alert_id[-8:]}"

    body = message.body
    available = SMS_MAX_GSM7 - len(prefix) - len(suffix)
    if available < 4:
        prefix = f"[{severity.label.upper()}] "
        available = SMS_MAX_GSM7 - len(prefix) - len(suffix)
    if len(body) > available:
        body = body[: available - 3] + "..."

    return f"{prefix}{body}{suffix}"


class SmsGatewayAdapter(HttpChannelAdapter):
    channel_id = "sms"
    display_name = "SMS Alerts"

    def build_payload(self, message: ChannelMessage, severity: Severity) -> Dict[str, Any]:
        return {
            "text": format_sms(message, severity),
            "broadcast": "registered",
            "priority": message.priority,
            "reference": message.alert_id,
        }
