"""
feed.py — Latest reading per (sensor id, parameter).

The sensor feed pushes readings in whatever order the network delivers
them. A newer reading for the same sensor and parameter supersedes the
previous one; an older one arriving late is stale and must not be
evaluated. Raw reading history is not kept.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

from backend.app.triggers.models import SensorReading

logger = logging.getLogger(__name__)


class SensorFeed:
    def __init__(self) -> None:
        self._latest: Dict[Tuple[str, str], SensorReading] = {}
        self._lock = threading.Lock()

    def accept(self, reading: SensorReading) -> bool:
        """Record ``reading`` if it is the newest for its key. Returns False when stale."""
        with self._lock:
            current = self._latest.get(reading.key)
            if current is not None and reading.observed_at < current.observed_at:
                logger.info(
                    "Stale reading from %s/%s ignored (%s < %s)",
                    reading.sensor_id, reading.parameter,
                    reading.observed_at.isoformat(), current.observed_at.isoformat(),
                    extra={"sensor_id": reading.sensor_id, "parameter": reading.parameter},
                )
                return False
            self._latest[reading.key] = reading
            return True

    def latest(self, sensor_id: str, parameter: str) -> Optional[SensorReading]:
        return self._latest.get((sensor_id, parameter))

    def snapshot(self) -> List[SensorReading]:
        with self._lock:
            readings = list(self._latest.values())
        return sorted(readings, key=lambda r: (r.sensor_id, r.parameter))
