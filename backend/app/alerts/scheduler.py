"""
scheduler.py — Background expiry of ACTIVE alerts past their expiry time.

Usage:
    sweeper = ExpirySweeper(alert_store, interval_seconds=30)
    await sweeper.start()
    ...
    await sweeper.stop()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from backend.app.alerts.store import AlertStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodically moves due alerts to EXPIRED.

    ``on_expired`` is awaited with the expired ids after any sweep that
    expired at least one alert (used to snapshot the stores).
    """

    def __init__(
        self,
        alert_store: AlertStore,
        *,
        interval_seconds: float = 30.0,
        on_expired: Optional[Callable[[List[str]], Awaitable[None]]] = None,
    ):
        self.alert_store = alert_store
        self.interval_seconds = interval_seconds
        self.on_expired = on_expired
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_sweep_at: Optional[datetime] = None
        self.total_expired = 0

    @property
    def running(self) -> bool:
        return self._running

    async def sweep_once(self, now: Optional[datetime] = None) -> List[str]:
        expired = self.alert_store.expire_due(now)
        self.last_sweep_at = now or datetime.now(timezone.utc)
        if expired:
            self.total_expired += len(expired)
            logger.info("Expiry sweep expired %d alert(s): %s", len(expired), expired)
            if self.on_expired is not None:
                await self.on_expired(expired)
        return expired

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Expiry sweeper started (every %.0fs)", self.interval_seconds)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Expiry sweeper stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                await self.sweep_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception("Expiry sweep failed: %s", e)
                await asyncio.sleep(self.interval_seconds)
