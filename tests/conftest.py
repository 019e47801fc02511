"""
Shared test helpers: a controllable clock, stub channel adapters and a
factory for a fully wired AlertService that never touches the network.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import pytest

from backend.app.alerts.alert_service import AlertService
from backend.app.alerts.channels.base import (
    ChannelAdapter,
    ChannelMessage,
    ChannelOutcome,
    ChannelRegistry,
)
from backend.app.alerts.dispatcher import AlertDispatcher
from backend.app.alerts.models import Severity
from backend.app.alerts.scheduler import ExpirySweeper
from backend.app.alerts.store import AlertStore
from backend.app.sensors.feed import SensorFeed
from backend.app.triggers.engine import TriggerEngine
from backend.app.triggers.store import TriggerStore

T0 = datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class StubAdapter(ChannelAdapter):
    """Adapter with a fixed outcome, optional delay and optional exception."""

    def __init__(
        self,
        channel_id: str,
        outcome: Optional[ChannelOutcome] = None,
        *,
        delay: float = 0.0,
        raises: Optional[Exception] = None,
        timeout_seconds: float = 1.0,
        display_name: Optional[str] = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds)
        self.channel_id = channel_id
        self.display_name = display_name or channel_id.upper()
        self.outcome = outcome or ChannelOutcome.sent(100)
        self.delay = delay
        self.raises = raises
        self.calls: List[tuple] = []

    async def send(self, message: ChannelMessage, severity: Severity) -> ChannelOutcome:
        self.calls.append((message, severity))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        return self.outcome


def make_service(
    adapters: Iterable[ChannelAdapter] = (),
    *,
    clock: Optional[FakeClock] = None,
    cooldown: timedelta = timedelta(minutes=15),
    category_channels: Optional[dict] = None,
    auto_dispatch: bool = True,
) -> AlertService:
    """AlertService over stub channels; clock defaults to real time."""
    clock_kwargs = {"clock": clock} if clock is not None else {}
    trigger_store = TriggerStore()
    alert_store = AlertStore(**clock_kwargs)
    channels = ChannelRegistry(adapters)
    dispatcher = AlertDispatcher(
        alert_store,
        channels,
        category_channels=category_channels if category_channels is not None else {
            "general": channels.ids(),
        },
        **clock_kwargs,
    )
    return AlertService(
        trigger_store=trigger_store,
        alert_store=alert_store,
        feed=SensorFeed(),
        engine=TriggerEngine(
            trigger_store, alert_store=alert_store, cooldown=cooldown, **clock_kwargs,
        ),
        channels=channels,
        dispatcher=dispatcher,
        sweeper=ExpirySweeper(alert_store, interval_seconds=0.01),
        auto_dispatch=auto_dispatch,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
