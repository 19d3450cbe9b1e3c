"""Resolution of raw readings into canonical sensor readings, plus unit conversion."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from app.schemas import Reading
from models.records import ExplicitReading, LegacyReading, ReadingVariant, SensorReading

FALLBACK_SENSOR_TYPE = "Telemetry"
SOIL_MOISTURE = "SoilMoisture"
AIR_TEMPERATURE = "AirTemperature"
PRECIPITATION = "Precipitation"

LEGACY_UNITS = {
    SOIL_MOISTURE: "Percent",
    AIR_TEMPERATURE: "Celsius",
    PRECIPITATION: "mm",
}

# Units assumed when a resolved reading carries none. Precipitation is never
# inferred as a sensor type, so it has no entry.
_DEFAULT_UNITS = {
    SOIL_MOISTURE: LEGACY_UNITS[SOIL_MOISTURE],
    AIR_TEMPERATURE: LEGACY_UNITS[AIR_TEMPERATURE],
}

_ZERO = Decimal(0)


def classify(reading: Reading) -> ReadingVariant:
    """Tag a reading as explicit (it names a sensor type) or legacy."""
    timestamp = reading.effective_timestamp
    if reading.sensor_type is not None:
        return ExplicitReading(
            field_id=reading.field_id,
            sensor_type=reading.sensor_type,
            value=reading.value,
            unit=reading.unit,
            timestamp=timestamp,
            soil_moisture=reading.soil_moisture,
            air_temperature=reading.air_temperature,
            precipitation=reading.precipitation,
        )
    return LegacyReading(
        field_id=reading.field_id,
        timestamp=timestamp,
        value=reading.value,
        unit=reading.unit,
        soil_moisture=reading.soil_moisture,
        air_temperature=reading.air_temperature,
        precipitation=reading.precipitation,
    )


def _first_legacy_value(variant: ReadingVariant) -> Optional[Decimal]:
    for candidate in (variant.soil_moisture, variant.air_temperature, variant.precipitation):
        if candidate is not None:
            return candidate
    return None


def _infer_sensor_type(variant: LegacyReading) -> str:
    if variant.soil_moisture is not None:
        return SOIL_MOISTURE
    if variant.air_temperature is not None:
        return AIR_TEMPERATURE
    return FALLBACK_SENSOR_TYPE


def resolve(reading: Reading | ReadingVariant) -> SensorReading:
    """Resolve the ``(sensor_type, value, unit)`` triple of a reading.

    The sensor type comes from the reading itself, else from the first legacy
    field that is set (soil moisture, then air temperature), else
    ``Telemetry``. A missing value falls back to the first legacy scalar and
    finally to zero. A missing unit defaults from the resolved sensor type.
    """
    variant = classify(reading) if isinstance(reading, Reading) else reading

    if isinstance(variant, ExplicitReading):
        sensor_type = variant.sensor_type
    else:
        sensor_type = _infer_sensor_type(variant)

    value = variant.value
    if value is None:
        value = _first_legacy_value(variant)
    if value is None:
        value = _ZERO

    unit = variant.unit
    if unit is None:
        unit = _DEFAULT_UNITS.get(sensor_type, "")

    return SensorReading(
        field_id=variant.field_id,
        sensor_type=sensor_type,
        value=value,
        unit=unit,
        timestamp=variant.timestamp,
    )


def expand(reading: Reading | ReadingVariant) -> List[SensorReading]:
    """Expand a reading into the entries kept in the time series history.

    Explicit readings yield one entry. Legacy readings yield one synthetic
    entry per legacy field that is set, each with the field's fixed unit and
    the shared reading timestamp.
    """
    variant = classify(reading) if isinstance(reading, Reading) else reading

    if isinstance(variant, ExplicitReading):
        return [resolve(variant)]

    entries: List[SensorReading] = []
    for sensor_type, value in (
        (SOIL_MOISTURE, variant.soil_moisture),
        (AIR_TEMPERATURE, variant.air_temperature),
        (PRECIPITATION, variant.precipitation),
    ):
        if value is None:
            continue
        entries.append(
            SensorReading(
                field_id=variant.field_id,
                sensor_type=sensor_type,
                value=value,
                unit=LEGACY_UNITS[sensor_type],
                timestamp=variant.timestamp,
            )
        )
    return entries


def normalize(sensor_type: str, value: Decimal, unit: str) -> Decimal:
    """Convert a value to the canonical unit of its sensor type.

    Only Fahrenheit temperatures are converted; every other combination is
    passed through unchanged.
    """
    kind = sensor_type.lower()
    unit_key = (unit or "").lower()
    if kind == "temperature" and unit_key == "fahrenheit":
        return (value - 32) * 5 / 9
    return value
