"""
base.py — The ChannelAdapter capability and the channel registry.

Every channel implements one coroutine:

    send(message, severity) → ChannelOutcome

Adapters never raise transport errors to the dispatcher. A provider that
cannot be reached, answers with an error status, or returns garbage yields
``ChannelOutcome.failed(...)``. Adding a channel means registering a new
adapter; the dispatcher never branches on channel ids.

═══════════════════════════════════════════════════════════════════════════
PROVIDER MODES
═══════════════════════════════════════════════════════════════════════════

    simulation   Logs the message and reports the configured audience size.
                 Default for development; deterministic, no network.

    http         POSTs a JSON payload to the channel's endpoint via httpx.
                 Response handling:
                     2xx + {"reach": n}   → SENT with reach n
                     202                  → PENDING (queued by provider)
                     other 2xx            → SENT with configured audience
                     4xx / 5xx / network  → FAILED
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx

from backend.app.alerts.models import DeliveryStatus, Severity
from backend.app.core.errors import ChannelDeliveryError

logger = logging.getLogger(__name__)

SIMULATION = "simulation"


@dataclass(frozen=True)
class ChannelMessage:
    """Provider-agnostic message handed to every adapter."""
    alert_id: str
    title: str
    body: str
    category: str = "general"
    area: str = ""
    priority: int = 3


@dataclass(frozen=True)
class ChannelOutcome:
    status: DeliveryStatus
    reach: Optional[int] = None
    detail: Optional[str] = None

    @classmethod
    def sent(cls, reach: int, detail: Optional[str] = None) -> "ChannelOutcome":
        return cls(DeliveryStatus.SENT, max(int(reach), 0), detail)

    @classmethod
    def pending(cls, detail: Optional[str] = None) -> "ChannelOutcome":
        return cls(DeliveryStatus.PENDING, None, detail)

    @classmethod
    def failed(cls, detail: str) -> "ChannelOutcome":
        return cls(DeliveryStatus.FAILED, None, detail)


class ChannelAdapter(ABC):
    """One notification channel."""

    channel_id: str = ""
    display_name: str = ""

    def __init__(self, *, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    async def send(self, message: ChannelMessage, severity: Severity) -> ChannelOutcome:
        """Deliver ``message``; report the outcome instead of raising."""

    def describe(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "name": self.display_name,
            "timeout_seconds": self.timeout_seconds,
        }


class HttpChannelAdapter(ChannelAdapter):
    """
    Channel backed by an HTTP endpoint, with a simulation fallback.

    Subclasses provide ``build_payload`` and may override ``simulate``.
    """

    def __init__(
        self,
        *,
        provider: str = SIMULATION,
        endpoint: Optional[str] = None,
        audience: int = 0,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds)
        self.provider = provider
        self.endpoint = endpoint
        self.audience = audience
        self.api_key = api_key
        self._transport = transport

    @property
    def simulated(self) -> bool:
        return self.provider == SIMULATION or not self.endpoint

    @abstractmethod
    def build_payload(self, message: ChannelMessage, severity: Severity) -> Dict[str, Any]:
        """Provider request body."""

    def simulate(self, message: ChannelMessage, severity: Severity) -> ChannelOutcome:
        logger.info(
            "[%s] Alert %s (%s) → %d recipients: %s",
            self.channel_id.upper(), message.alert_id, severity.value,
            self.audience, message.title,
            extra={"alert_id": message.alert_id, "channel": self.channel_id},
        )
        return ChannelOutcome.sent(self.audience, detail="simulated")

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self._transport,
        ) as client:
            response = await client.post(self.endpoint, json=payload, headers=headers)
        if response.status_code >= 400:
            raise ChannelDeliveryError(
                self.channel_id,
                f"provider answered HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _interpret(self, response: httpx.Response) -> ChannelOutcome:
        if response.status_code == 202:
            return ChannelOutcome.pending(detail="queued by provider")
        try:
            body = response.json()
        except ValueError:
            body = {}
        reach = body.get("reach") if isinstance(body, dict) else None
        if isinstance(reach, int) and not isinstance(reach, bool):
            return ChannelOutcome.sent(reach)
        return ChannelOutcome.sent(self.audience)

    async def send(self, message: ChannelMessage, severity: Severity) -> ChannelOutcome:
        if self.simulated:
            return self.simulate(message, severity)

        try:
            response = await self._post(self.build_payload(message, severity))
        except ChannelDeliveryError as exc:
            logger.error(
                "[%s] %s", self.channel_id.upper(), exc.message,
                extra={"alert_id": message.alert_id, "channel": self.channel_id},
            )
            return ChannelOutcome.failed(exc.message)
        except httpx.HTTPError as exc:
            logger.error(
                "[%s] Transport error for alert %s: %s",
                self.channel_id.upper(), message.alert_id, exc,
                extra={"alert_id": message.alert_id, "channel": self.channel_id},
            )
            return ChannelOutcome.failed(f"transport error: {exc}")

        return self._interpret(response)


class ChannelRegistry:
    """Channel id → adapter, in registration order."""

    def __init__(self, adapters: Iterable[ChannelAdapter] = ()):
        self._adapters: Dict[str, ChannelAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ChannelAdapter) -> None:
        if not adapter.channel_id:
            raise ValueError(f"{type(adapter).__name__} has no channel_id")
        self._adapters[adapter.channel_id] = adapter

    def get(self, channel_id: str) -> Optional[ChannelAdapter]:
        return self._adapters.get(channel_id)

    def __contains__(self, channel_id: str) -> bool:
        return channel_id in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    def ids(self) -> List[str]:
        return list(self._adapters)

    def describe(self) -> List[Dict[str, Any]]:
        return [a.describe() for a in self._adapters.values()]
