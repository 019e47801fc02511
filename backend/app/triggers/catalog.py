"""
catalog.py — Recognised sensor parameters per trigger type.

A condition is only accepted when its parameter is listed for its trigger
type. MANUAL conditions may watch any catalogued parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from backend.app.triggers.models import TriggerType


@dataclass(frozen=True)
class ParameterInfo:
    parameter: str
    name: str
    unit: str


PARAMETER_CATALOG: Dict[TriggerType, List[ParameterInfo]] = {
    TriggerType.WEATHER: [
        ParameterInfo("rainfall", "Rainfall", "mm/hour"),
        ParameterInfo("wind_speed", "Wind Speed", "km/h"),
        ParameterInfo("temperature", "Temperature", "°C"),
        ParameterInfo("humidity", "Humidity", "%"),
        ParameterInfo("pressure", "Atmospheric Pressure", "hPa"),
    ],
    TriggerType.SEISMIC: [
        ParameterInfo("magnitude", "Earthquake Magnitude", "Richter"),
        ParameterInfo("intensity", "Intensity", "PEIS"),
    ],
    TriggerType.WATER: [
        ParameterInfo("water_level", "Water Level", "meters"),
        ParameterInfo("flow_rate", "Flow Rate", "m³/s"),
    ],
    TriggerType.AIR: [
        ParameterInfo("pm25", "PM2.5", "μg/m³"),
        ParameterInfo("pm10", "PM10", "μg/m³"),
        ParameterInfo("aqi", "Air Quality Index", "AQI"),
    ],
}


def all_parameters() -> List[ParameterInfo]:
    return [spec for specs in PARAMETER_CATALOG.values() for spec in specs]


def is_recognised(trigger_type: TriggerType, parameter: str) -> bool:
    if trigger_type == TriggerType.MANUAL:
        candidates = all_parameters()
    else:
        candidates = PARAMETER_CATALOG.get(trigger_type, [])
    return any(spec.parameter == parameter for spec in candidates)


def lookup(parameter: str) -> Optional[ParameterInfo]:
    for spec in all_parameters():
        if spec.parameter == parameter:
            return spec
    return None


def catalog_as_dict() -> Dict[str, List[Dict[str, str]]]:
    return {
        trigger_type.value: [
            {"parameter": s.parameter, "name": s.name, "unit": s.unit}
            for s in specs
        ]
        for trigger_type, specs in PARAMETER_CATALOG.items()
    }
