"""
radio_broadcast.py — Local radio station announcements.

Stations take a text bulletin and read it on air. High and critical alerts
interrupt programming; lower severities go into the next news slot, which
the station API acknowledges with 202 Accepted (recorded as pending).
"""

from __future__ import annotations

from typing import Any, Dict

from backend.app.alerts.channels.base import ChannelMessage, HttpChannelAdapter
from backend.app.alerts.models import Severity


class RadioBroadcastAdapter(HttpChannelAdapter):
    channel_id = "radio"
    display_name = "Radio Broadcast"

    def build_payload(self, message: ChannelMessage, severity: Severity) -> Dict[str, Any]:
        return {
            "bulletin": f"{severity.label} for {message.area}. {message.title}. {message.body}",
            "interrupt_programming": severity in (Severity.HIGH, Severity.CRITICAL),
            "repeat_every_minutes": 15 if severity == Severity.CRITICAL else 30,
            "reference": message.alert_id,
        }
