from __future__ import annotations

from decimal import Decimal
from typing import Optional

import pytest

from app.schemas import Reading
from services.anomaly import PEST_REASON, AnomalyDetector
from services.normalizer import resolve
from services.thresholds import SENSOR_THRESHOLDS, Threshold, lookup_threshold


def _detect(
    sensor_type: str,
    value: str,
    unit: str = "",
    pests: Optional[bool] = None,
):
    reading = Reading(
        field_id="field-1",
        sensor_type=sensor_type,
        value=Decimal(value),
        unit=unit,
        is_rich_in_pests=pests,
    )
    return AnomalyDetector().detect(reading, resolve(reading))


def test_threshold_table_contents() -> None:
    assert dict(SENSOR_THRESHOLDS) == {
        "Temperature": Threshold(Decimal(0), Decimal(50)),
        "Humidity": Threshold(Decimal(0), Decimal(100)),
        "SoilMoisture": Threshold(Decimal(0), Decimal(100)),
        "pH": Threshold(Decimal(4), Decimal(9)),
    }


def test_threshold_lookup_is_case_sensitive() -> None:
    assert lookup_threshold("pH") is not None
    assert lookup_threshold("ph") is None
    assert lookup_threshold("Nitrogen") is None


@pytest.mark.parametrize("value", ["0", "50", "25.5"])
def test_values_on_or_inside_bounds_are_not_anomalous(value: str) -> None:
    result = _detect("Temperature", value, "Celsius")

    assert result.is_anomaly is False
    assert result.reason is None


@pytest.mark.parametrize("value", ["-0.0000000001", "50.0000000001"])
def test_values_just_outside_bounds_are_anomalous(value: str) -> None:
    assert _detect("Temperature", value, "Celsius").is_anomaly is True


def test_below_minimum_reason_embeds_exact_values() -> None:
    result = _detect("Temperature", "-5", "Celsius")

    assert result.is_anomaly is True
    assert result.reason == "Value -5 is below minimum threshold 0"


def test_above_maximum_reason_embeds_exact_values() -> None:
    result = _detect("pH", "9.5")

    assert result.reason == "Value 9.5 is above maximum threshold 9"


def test_range_check_uses_normalized_value() -> None:
    # 130 F is about 54.4 C, above the 50 C maximum.
    result = _detect("Temperature", "130", "Fahrenheit")

    assert result.is_anomaly is True
    assert result.reason is not None
    assert result.reason.startswith("Value 54.4")
    assert result.reason.endswith("above maximum threshold 50")

    # 100 F is below the maximum once converted even though 100 > 50.
    assert _detect("Temperature", "100", "Fahrenheit").is_anomaly is False


@pytest.mark.parametrize(
    ("sensor_type", "value"),
    [("Temperature", "20"), ("Nitrogen", "12"), ("pH", "2")],
)
def test_pest_indicator_always_flags_anomaly(sensor_type: str, value: str) -> None:
    result = _detect(sensor_type, value, pests=True)

    assert result.is_anomaly is True
    assert result.reason == PEST_REASON


def test_pest_indicator_false_falls_through_to_range_check() -> None:
    assert _detect("Humidity", "40", "Percent", pests=False).is_anomaly is False
    assert _detect("Humidity", "140", "Percent", pests=False).is_anomaly is True


def test_unknown_sensor_type_is_never_out_of_range() -> None:
    assert _detect("Nitrogen", "1000000").is_anomaly is False


def test_lowercase_sensor_type_has_no_threshold() -> None:
    assert _detect("temperature", "100", "Celsius").is_anomaly is False


def test_detector_accepts_custom_threshold_lookup() -> None:
    reading = Reading(field_id="f", sensor_type="Nitrogen", value=Decimal(3))
    detector = AnomalyDetector(thresholds=lambda _type: Threshold(Decimal(5), Decimal(10)))

    result = detector.detect(reading, resolve(reading))

    assert result.is_anomaly is True
    assert result.reason == "Value 3 is below minimum threshold 5"
