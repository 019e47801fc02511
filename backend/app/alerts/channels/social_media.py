"""
social_media.py — Posts alerts to the office's social media pages.

A single webhook (the office's publishing relay) cross-posts to Facebook,
Twitter and Instagram. Reach is the follower count the relay reports, or
the configured follower estimate when it reports none.
"""

from __future__ import annotations

from typing import Any, Dict

from backend.app.alerts.channels.base import ChannelMessage, HttpChannelAdapter
from backend.app.alerts.models import Severity

_HASHTAGS = {
    "typhoon": "#TyphoonWarning",
    "earthquake": "#Earthquake",
    "flood": "#FloodAlert",
    "tsunami": "#TsunamiWarning",
    "fire": "#FireAlert",
    "landslide": "#Landslide",
    "heat": "#HeatAdvisory",
}


def format_post(message: ChannelMessage, severity: Severity) -> str:
    tags = " ".join(filter(None, ["#EmergencyAlert", _HASHTAGS.get(message.category)]))
    return (
        f"⚠️ {severity.label.upper()}: {message.title}\n\n"
        f"{message.body}\n\n"
        f"📍 {message.area}\n{tags}"
    )


class SocialMediaAdapter(HttpChannelAdapter):
    channel_id = "social-media"
    display_name = "Social Media"

    def build_payload(self, message: ChannelMessage, severity: Severity) -> Dict[str, Any]:
        return {
            "text": format_post(message, severity),
            "platforms": ["facebook", "twitter", "instagram"],
            "pin": severity in (Severity.HIGH, Severity.CRITICAL),
            "reference": message.alert_id,
        }
