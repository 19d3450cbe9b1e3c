"""Acceptable value ranges per sensor type."""

from __future__ import annotations

from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


class Threshold(NamedTuple):
    min: Decimal
    max: Decimal


# Keys are matched case-sensitively.
SENSOR_THRESHOLDS: Mapping[str, Threshold] = MappingProxyType(
    {
        "Temperature": Threshold(Decimal(0), Decimal(50)),
        "Humidity": Threshold(Decimal(0), Decimal(100)),
        "SoilMoisture": Threshold(Decimal(0), Decimal(100)),
        "pH": Threshold(Decimal(4), Decimal(9)),
    }
)


def lookup_threshold(sensor_type: str) -> Optional[Threshold]:
    return SENSOR_THRESHOLDS.get(sensor_type)
