"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A reading resolved to a single sensor type, value and unit."""

    field_id: str
    sensor_type: str
    value: Decimal
    unit: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class ExplicitReading:
    """A reading that names its sensor type.

    Legacy scalars are still carried because a missing ``value`` falls back to
    them.
    """

    field_id: str
    sensor_type: str
    value: Optional[Decimal]
    unit: Optional[str]
    timestamp: datetime
    soil_moisture: Optional[Decimal] = None
    air_temperature: Optional[Decimal] = None
    precipitation: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class LegacyReading:
    """A reading without a sensor type, described by the legacy scalar fields.

    ``value`` and ``unit`` are kept when the sender supplied them; they override
    the values inferred from the legacy scalars.
    """

    field_id: str
    timestamp: datetime
    value: Optional[Decimal] = None
    unit: Optional[str] = None
    soil_moisture: Optional[Decimal] = None
    air_temperature: Optional[Decimal] = None
    precipitation: Optional[Decimal] = None


ReadingVariant = Union[ExplicitReading, LegacyReading]
