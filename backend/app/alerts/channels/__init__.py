"""
channels — Per-channel delivery adapters.

Each channel module exposes one ChannelAdapter subclass:
    send(message, severity) → ChannelOutcome

Adapters hold no alert state. Timeouts and batching live in the dispatcher.
"""

from __future__ import annotations

from backend.app.alerts.channels.base import ChannelRegistry
from backend.app.alerts.channels.email_alert import EmailAdapter
from backend.app.alerts.channels.public_address import PublicAddressAdapter
from backend.app.alerts.channels.radio_broadcast import RadioBroadcastAdapter
from backend.app.alerts.channels.siren_api import SirenAdapter
from backend.app.alerts.channels.sms_gateway import SmsGatewayAdapter
from backend.app.alerts.channels.social_media import SocialMediaAdapter
from backend.app.core.config import Settings


def build_channel_registry(settings: Settings) -> ChannelRegistry:
    """Registry of the six municipal channels configured from settings."""
    return ChannelRegistry([
        SocialMediaAdapter(
            provider=settings.SOCIAL_MEDIA_PROVIDER,
            endpoint=settings.SOCIAL_MEDIA_WEBHOOK_URL,
            audience=settings.SOCIAL_MEDIA_FOLLOWERS,
            timeout_seconds=settings.channel_timeout("social-media"),
        ),
        SmsGatewayAdapter(
            provider=settings.SMS_PROVIDER,
            endpoint=settings.SMS_GATEWAY_URL,
            api_key=settings.SMS_API_KEY,
            audience=settings.SMS_REGISTERED_RECIPIENTS,
            timeout_seconds=settings.channel_timeout("sms"),
        ),
        EmailAdapter(
            provider=settings.EMAIL_PROVIDER,
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            sender=settings.EMAIL_SENDER,
            subscribers=settings.EMAIL_SUBSCRIBERS,
            simulated_audience=settings.EMAIL_SIMULATED_SUBSCRIBERS,
            timeout_seconds=settings.channel_timeout("email"),
        ),
        RadioBroadcastAdapter(
            provider=settings.RADIO_PROVIDER,
            endpoint=settings.RADIO_API_URL,
            audience=settings.RADIO_LISTENERS,
            timeout_seconds=settings.channel_timeout("radio"),
        ),
        PublicAddressAdapter(
            provider=settings.PUBLIC_ADDRESS_PROVIDER,
            endpoint=settings.PUBLIC_ADDRESS_URL,
            audience=settings.PUBLIC_ADDRESS_COVERAGE,
            timeout_seconds=settings.channel_timeout("loudspeaker"),
        ),
        SirenAdapter(
            provider=settings.SIREN_PROVIDER,
            endpoint=settings.SIREN_API_URL,
            audience=settings.SIREN_COVERAGE,
            timeout_seconds=settings.channel_timeout("sirens"),
        ),
    ])
