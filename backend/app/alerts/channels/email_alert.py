"""
email_alert.py — Email alert delivery channel.

Delivery mechanism:
    • SMTP relay, one message BCC'd to the subscriber list
    • Plain-text body (title, severity, area, message)
    • Reach = subscribers the relay accepted

Email is slower than SMS or sirens and is never the only channel for an
urgent alert, but it leaves a persistent record residents can refer back to.

═══════════════════════════════════════════════════════════════════════════
TEMPLATE
═══════════════════════════════════════════════════════════════════════════

    Subject: [WARNING] Flood: River Level Critical
    Body:
        FLOOD ALERT — WARNING
        Area: Pio Duran River
        Priority: 4/5

        {body}

        Ref: ALR-3A7B...
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import List, Optional

from backend.app.alerts.channels.base import (
    SIMULATION,
    ChannelAdapter,
    ChannelMessage,
    ChannelOutcome,
)
from backend.app.alerts.models import Severity

logger = logging.getLogger(__name__)


def build_subject(message: ChannelMessage, severity: Severity) -> str:
    return f"[{severity.label.upper()}] {message.category.title()}: {message.title}"


def build_plain_body(message: ChannelMessage, severity: Severity) -> str:
    return (
        f"{message.category.upper()} ALERT — {severity.label.upper()}\n"
        f"Area: {message.area}\n"
        f"Priority: {message.priority}/5\n\n"
        f"{message.body}\n\n"
        f"Ref: {message.alert_id}\n"
    )


class EmailAdapter(ChannelAdapter):
    channel_id = "email"
    display_name = "Email Alerts"

    def __init__(
        self,
        *,
        provider: str = SIMULATION,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        sender: str = "alerts@localhost",
        subscribers: Optional[List[str]] = None,
        simulated_audience: int = 0,
        timeout_seconds: float = 10.0,
    ):
        super().__init__(timeout_seconds=timeout_seconds)
        self.provider = provider
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender = sender
        self.subscribers = list(subscribers or [])
        self.simulated_audience = simulated_audience

    @property
    def simulated(self) -> bool:
        return self.provider == SIMULATION or not self.smtp_host

    def _compose(self, message: ChannelMessage, severity: Severity) -> EmailMessage:
        mail = EmailMessage()
        mail["Subject"] = build_subject(message, severity)
        mail["From"] = self.sender
        mail["To"] = self.sender
        mail.set_content(build_plain_body(message, severity))
        return mail

    def _deliver_smtp(self, mail: EmailMessage) -> int:
        """Blocking SMTP session; returns the number of accepted recipients."""
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout_seconds) as smtp:
            smtp.starttls()
            if self.smtp_user:
                smtp.login(self.smtp_user, self.smtp_password or "")
            refused = smtp.send_message(mail, to_addrs=self.subscribers)
        return len(self.subscribers) - len(refused)

    async def send(self, message: ChannelMessage, severity: Severity) -> ChannelOutcome:
        if self.simulated:
            logger.info(
                "[EMAIL] Alert %s → %d subscribers: %s",
                message.alert_id, self.simulated_audience, build_subject(message, severity),
                extra={"alert_id": message.alert_id, "channel": self.channel_id},
            )
            return ChannelOutcome.sent(self.simulated_audience, detail="simulated")

        if not self.subscribers:
            return ChannelOutcome.failed("no email subscribers configured")

        try:
            accepted = await asyncio.to_thread(self._deliver_smtp, self._compose(message, severity))
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "[EMAIL] SMTP delivery failed for alert %s: %s", message.alert_id, exc,
                extra={"alert_id": message.alert_id, "channel": self.channel_id},
            )
            return ChannelOutcome.failed(f"smtp error: {exc}")

        if accepted == 0:
            return ChannelOutcome.failed("relay refused every recipient")
        return ChannelOutcome.sent(accepted)
