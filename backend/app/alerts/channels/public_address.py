"""
public_address.py — Community loudspeaker (public address) network.

Barangay loudspeakers play a short spoken announcement. Long bodies are cut
to keep the announcement under roughly thirty seconds of speech.
"""

from __future__ import annotations

from typing import Any, Dict

from backend.app.alerts.channels.base import ChannelMessage, HttpChannelAdapter
from backend.app.alerts.models import Severity

MAX_ANNOUNCEMENT_CHARS = 400


def format_announcement(message: ChannelMessage, severity: Severity) -> str:
    text = f"Attention {message.area}. {severity.label}. {message.title}. {message.body}"
    if len(text) > MAX_ANNOUNCEMENT_CHARS:
        text = text[: MAX_ANNOUNCEMENT_CHARS - 3] + "..."
    return text


class PublicAddressAdapter(HttpChannelAdapter):
    channel_id = "loudspeaker"
    display_name = "Public Address"

    def build_payload(self, message: ChannelMessage, severity: Severity) -> Dict[str, Any]:
        return {
            "announcement": format_announcement(message, severity),
            "repeat": 3 if severity == Severity.CRITICAL else 1,
            "reference": message.alert_id,
        }
