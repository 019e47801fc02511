"""
test_trigger_engine.py — Reading evaluation, comparators and cool-down.

Run with:
    pytest tests/test_trigger_engine.py -v
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from backend.app.alerts.models import AlertCategory, Severity
from backend.app.alerts.store import AlertStore
from backend.app.triggers.engine import TriggerEngine
from backend.app.triggers.models import Comparator, SensorReading, TriggerCondition, TriggerType
from backend.app.triggers.seed import sample_conditions
from backend.app.triggers.store import TriggerStore


def _river(**overrides) -> TriggerCondition:
    fields = dict(
        condition_id="TRG-RIVER",
        name="River Level Critical",
        trigger_type=TriggerType.WATER,
        parameter="water_level",
        comparator=Comparator.GT,
        threshold=8.5,
        unit="meters",
        alert_category=AlertCategory.FLOOD,
        severity=Severity.CRITICAL,
    )
    fields.update(overrides)
    return TriggerCondition(**fields)


def _reading(value: float, parameter: str = "water_level", **kwargs) -> SensorReading:
    return SensorReading(
        sensor_id=kwargs.pop("sensor_id", "WL-01"),
        parameter=parameter,
        value=value,
        unit=kwargs.pop("unit", "meters"),
        location=kwargs.pop("location", "Pio Duran River"),
        **kwargs,
    )


def _engine(conditions, clock, *, alert_store=None, cooldown=timedelta(minutes=15)):
    store = TriggerStore(conditions)
    return store, TriggerEngine(store, alert_store=alert_store, cooldown=cooldown, clock=clock)


class TestComparator:
    @pytest.mark.parametrize("comparator,value,expected", [
        (Comparator.GT, 9.0, True),
        (Comparator.GT, 8.5, False),
        (Comparator.GE, 8.5, True),
        (Comparator.LT, 8.0, True),
        (Comparator.LE, 8.5, True),
        (Comparator.LE, 8.6, False),
        (Comparator.EQ, 8.5, True),
        (Comparator.EQ, 8.4, False),
    ])
    def test_holds(self, comparator, value, expected):
        assert comparator.holds(value, 8.5) is expected


class TestEvaluate:
    def test_reading_above_threshold_fires(self, clock):
        store, engine = _engine([_river()], clock)
        events = engine.evaluate(_reading(9.0))

        assert len(events) == 1
        event = events[0]
        assert event.condition_id == "TRG-RIVER"
        assert event.category is AlertCategory.FLOOD
        assert event.severity is Severity.CRITICAL
        assert event.value == 9.0
        assert event.fired_at == clock.now
        assert event.location == "Pio Duran River"

        stored = store.get("TRG-RIVER")
        assert stored.trigger_count == 1
        assert stored.last_triggered_at == clock.now

    def test_reading_at_threshold_does_not_fire_strict(self, clock):
        store, engine = _engine([_river()], clock)
        assert engine.evaluate(_reading(8.5)) == []
        assert store.get("TRG-RIVER").trigger_count == 0

    def test_unwatched_parameter_is_noop(self, clock):
        store, engine = _engine([_river()], clock)
        assert engine.evaluate(_reading(99.0, parameter="rainfall")) == []

    def test_inactive_condition_ignored(self, clock):
        store, engine = _engine([_river(is_active=False)], clock)
        assert engine.evaluate(_reading(9.0)) == []
        assert store.get("TRG-RIVER").trigger_count == 0

    def test_units_are_not_converted(self, clock):
        # 800 cm is below 8.5 m, but only the number is compared
        store, engine = _engine([_river()], clock)
        assert len(engine.evaluate(_reading(800.0, unit="cm"))) == 1

    def test_multiple_conditions_fire_independently(self, clock):
        conditions = [
            _river(),
            _river(condition_id="TRG-RIVER-WATCH", name="River Watch", threshold=7.0,
                   severity=Severity.MEDIUM),
        ]
        store, engine = _engine(conditions, clock)
        events = engine.evaluate(_reading(9.0))
        assert {e.condition_id for e in events} == {"TRG-RIVER", "TRG-RIVER-WATCH"}

    def test_seeded_conditions(self, clock):
        store, engine = _engine(sample_conditions(), clock)
        events = engine.evaluate(_reading(5.4, parameter="magnitude", unit="Richter"))
        assert [e.condition_id for e in events] == ["TRG-QUAKE"]
        assert store.get("TRG-QUAKE").trigger_count == 1


class TestCooldown:
    def test_repeat_within_window_suppressed(self, clock):
        store, engine = _engine([_river()], clock)
        assert len(engine.evaluate(_reading(9.0))) == 1
        clock.advance(minutes=5)
        assert engine.evaluate(_reading(9.2)) == []
        assert store.get("TRG-RIVER").trigger_count == 1

    def test_fires_again_after_window(self, clock):
        store, engine = _engine([_river()], clock)
        engine.evaluate(_reading(9.0))
        clock.advance(minutes=16)
        assert len(engine.evaluate(_reading(9.0))) == 1
        assert store.get("TRG-RIVER").trigger_count == 2

    def test_active_alert_holds_condition(self, clock):
        alert_store = AlertStore(clock=clock)
        store, engine = _engine([_river()], clock, alert_store=alert_store)

        alert = alert_store.create(
            title="River Level Critical", body="Evacuate", channels=["sms"],
            trigger_id="TRG-RIVER",
        )
        alert_store.activate(alert.alert_id)

        clock.advance(hours=2)
        assert engine.evaluate(_reading(9.0)) == []

        alert_store.cancel(alert.alert_id)
        assert len(engine.evaluate(_reading(9.0))) == 1

    def test_draft_alert_does_not_hold(self, clock):
        alert_store = AlertStore(clock=clock)
        store, engine = _engine([_river()], clock, alert_store=alert_store)
        alert_store.create(title="t", body="b", trigger_id="TRG-RIVER")
        assert len(engine.evaluate(_reading(9.0))) == 1

    def test_zero_cooldown_fires_every_reading(self, clock):
        store, engine = _engine([_river()], clock, cooldown=timedelta(0))
        engine.evaluate(_reading(9.0))
        engine.evaluate(_reading(9.0))
        assert store.get("TRG-RIVER").trigger_count == 2
