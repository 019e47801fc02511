"""
test_alert_service.py — End-to-end pipeline: reading → trigger → alert.

Covers:
    • Stale readings dropped before evaluation
    • Auto-dispatch of fired conditions over the category's channels
    • Cool-down across readings while the generated alert is active
    • Auto-dispatch switched off
    • Startup seeding and the service factory

Run with:
    pytest tests/test_alert_service.py -v
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta

from backend.app.alerts.alert_service import build_alert_service
from backend.app.alerts.channels.base import ChannelOutcome
from backend.app.alerts.models import AlertCategory, AlertStatus, DispatchOutcome, Severity
from backend.app.core.config import Settings
from backend.app.triggers.models import Comparator, SensorReading, TriggerCondition, TriggerType
from backend.app.triggers.seed import sample_conditions

from conftest import StubAdapter, make_service


def _reading(clock, value: float, parameter: str = "water_level", **kwargs) -> SensorReading:
    return SensorReading(
        sensor_id=kwargs.pop("sensor_id", "WL-01"),
        parameter=parameter,
        value=value,
        unit="meters",
        observed_at=kwargs.pop("observed_at", clock.now),
        location="Pio Duran River",
    )


def _seeded_service(clock, adapters=None, **kwargs):
    adapters = adapters or [StubAdapter("sms", ChannelOutcome.sent(5000)), StubAdapter("sirens")]
    service = make_service(
        adapters,
        clock=clock,
        category_channels={"flood": ["sms", "sirens"], "general": ["sms"]},
        **kwargs,
    )
    for condition in sample_conditions():
        service.trigger_store.upsert(condition)
    return service


class TestIngestReading:
    def test_fire_auto_dispatches(self, clock):
        service = _seeded_service(clock)
        report = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))

        assert report.accepted
        assert [e.condition_id for e in report.fired] == ["TRG-RIVER"]
        assert len(report.dispatches) == 1
        result = report.dispatches[0]
        assert result.outcome is DispatchOutcome.SUCCESS
        assert result.reach == 5100

        alert = service.alert_store.get(result.alert_id)
        assert alert.status is AlertStatus.ACTIVE
        assert alert.trigger_id == "TRG-RIVER"
        assert service.trigger_store.get("TRG-RIVER").trigger_count == 3

    def test_below_threshold_creates_nothing(self, clock):
        service = _seeded_service(clock)
        report = asyncio.run(service.ingest_reading(_reading(clock, 8.5)))
        assert report.accepted
        assert report.fired == []
        assert len(service.alert_store) == 0

    def test_stale_reading_ignored(self, clock):
        service = _seeded_service(clock)
        asyncio.run(service.ingest_reading(_reading(clock, 7.0)))
        stale = _reading(clock, 9.5, observed_at=clock.now - timedelta(minutes=5))
        report = asyncio.run(service.ingest_reading(stale))

        assert not report.accepted
        assert report.fired == []
        assert len(service.alert_store) == 0
        assert service.feed.latest("WL-01", "water_level").value == 7.0

    def test_active_alert_suppresses_repeat(self, clock):
        service = _seeded_service(clock)
        asyncio.run(service.ingest_reading(_reading(clock, 9.0)))
        clock.advance(hours=1)
        report = asyncio.run(service.ingest_reading(_reading(clock, 9.4)))

        assert report.fired == []
        assert len(service.alert_store) == 1

    def test_refires_after_alert_cancelled_and_cooldown(self, clock):
        service = _seeded_service(clock)
        first = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))
        service.alert_store.cancel(first.dispatches[0].alert_id)

        clock.advance(minutes=20)
        again = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))
        assert len(again.dispatches) == 1
        assert len(service.alert_store) == 2

    def test_all_channels_failing_still_records(self, clock):
        adapters = [
            StubAdapter("sms", ChannelOutcome.failed("gateway down")),
            StubAdapter("sirens", ChannelOutcome.failed("no power")),
        ]
        service = _seeded_service(clock, adapters)
        report = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))

        result = report.dispatches[0]
        assert result.outcome is DispatchOutcome.FAILED
        alert = service.alert_store.get(result.alert_id)
        assert alert.status is AlertStatus.ACTIVE
        assert len(alert.sent_to) == 2

    def test_auto_dispatch_disabled(self, clock):
        service = _seeded_service(clock, auto_dispatch=False)
        report = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))
        assert len(report.fired) == 1
        assert report.dispatches == []
        assert len(service.alert_store) == 0

    def test_report_to_dict(self, clock):
        service = _seeded_service(clock)
        data = asyncio.run(service.ingest_reading(_reading(clock, 9.0))).to_dict()
        assert data["accepted"] is True
        assert data["fired"][0]["condition_id"] == "TRG-RIVER"
        assert data["dispatches"][0]["outcome"] == "success"


def _river_condition(condition_id: str, category: AlertCategory) -> TriggerCondition:
    return TriggerCondition(
        condition_id=condition_id,
        name=f"River {condition_id}",
        trigger_type=TriggerType.WATER,
        parameter="water_level",
        comparator=Comparator.GT,
        threshold=8.0,
        unit="meters",
        alert_category=category,
        severity=Severity.HIGH,
    )


class TestIngestFanOut:
    def test_unmapped_category_does_not_block_other_fires(self, clock):
        service = make_service(
            [StubAdapter("sms", ChannelOutcome.sent(800))],
            clock=clock,
            category_channels={"flood": ["sms"]},
        )
        service.trigger_store.upsert(_river_condition("TRG-A", AlertCategory.FLOOD))
        service.trigger_store.upsert(_river_condition("TRG-B", AlertCategory.HEAT))

        report = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))

        assert sorted(e.condition_id for e in report.fired) == ["TRG-A", "TRG-B"]
        assert [service.alert_store.get(d.alert_id).trigger_id for d in report.dispatches] == ["TRG-A"]
        assert report.dispatches[0].outcome is DispatchOutcome.SUCCESS
        assert len(report.failures) == 1
        assert report.failures[0]["condition_id"] == "TRG-B"
        assert report.failures[0]["error_code"] == "VALIDATION_ERROR"
        assert report.failures[0]["alert_id"] is None

        alerts = service.alert_store.list()
        assert [(a.trigger_id, a.status) for a in alerts] == [("TRG-A", AlertStatus.ACTIVE)]
        assert report.to_dict()["failures"][0]["condition_id"] == "TRG-B"

    def test_fired_alerts_dispatch_concurrently(self, clock):
        service = make_service(
            [StubAdapter("sms", delay=0.3)],
            clock=clock,
            category_channels={"flood": ["sms"], "heat": ["sms"]},
        )
        service.trigger_store.upsert(_river_condition("TRG-A", AlertCategory.FLOOD))
        service.trigger_store.upsert(_river_condition("TRG-B", AlertCategory.HEAT))

        start = time.perf_counter()
        report = asyncio.run(service.ingest_reading(_reading(clock, 9.0)))
        elapsed = time.perf_counter() - start

        assert len(report.dispatches) == 2
        assert elapsed < 0.55

    def test_zero_cooldown_overlapping_readings_fire_once(self, clock):
        service = make_service(
            [StubAdapter("sms", delay=0.1)],
            clock=clock,
            cooldown=timedelta(0),
            category_channels={"flood": ["sms"]},
        )
        service.trigger_store.upsert(_river_condition("TRG-A", AlertCategory.FLOOD))

        async def scenario():
            return await asyncio.gather(
                service.ingest_reading(_reading(clock, 9.0, sensor_id="WL-01")),
                service.ingest_reading(_reading(clock, 9.2, sensor_id="WL-02")),
            )

        first, second = asyncio.run(scenario())
        assert len(first.fired) + len(second.fired) == 1
        assert len(service.alert_store) == 1
        assert service.trigger_store.get("TRG-A").trigger_count == 1


class TestStartup:
    def test_start_seeds_empty_store(self):
        service = make_service([StubAdapter("sms")])

        async def scenario():
            await service.start()
            await service.stop()

        asyncio.run(scenario())
        assert len(service.trigger_store) == 5

    def test_start_without_seed(self):
        service = make_service([StubAdapter("sms")])

        async def scenario():
            await service.start(seed=False)
            await service.stop()

        asyncio.run(scenario())
        assert len(service.trigger_store) == 0

    def test_build_from_settings(self):
        service = build_alert_service(Settings(AUTO_ALERT_TTL_HOURS=0, TRIGGER_COOLDOWN_SECONDS=60))
        assert len(service.channels) == 6
        assert service.database is None
        assert service.dispatcher.auto_alert_ttl is None
        assert service.engine.cooldown == timedelta(seconds=60)
        assert service.dispatcher.channels_for(AlertCategory.FLOOD) == [
            "sms", "social-media", "radio", "loudspeaker",
        ]
