"""Unit tests for trend and statistics analytics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Sequence

import pytest

from app.schemas import Reading, TrendDirection
from datastore.time_series import TimeSeriesStore
from services.analytics import AnalyticsEngine, classify_trend

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _engine_with(values: Sequence[str], sensor_type: str = "Temperature") -> AnalyticsEngine:
    """Helper storing values one minute apart, oldest first."""

    store = TimeSeriesStore()
    for minute, value in enumerate(values):
        store.append(
            "field-1",
            Reading(
                field_id="field-1",
                sensor_type=sensor_type,
                value=Decimal(value),
                unit="Celsius",
                reading_timestamp=_BASE + timedelta(minutes=minute),
            ),
        )
    return AnalyticsEngine(store)


def test_statistics_over_matching_readings() -> None:
    engine = _engine_with(["10", "20", "30"])

    stats = engine.get_statistics("field-1", "Temperature")

    assert stats is not None
    assert stats.average == 20
    assert stats.min == 10
    assert stats.max == 30
    assert stats.count == 3


def test_statistics_sensor_type_is_case_insensitive() -> None:
    stats = _engine_with(["4"]).get_statistics("field-1", "temperature")

    assert stats is not None
    assert stats.count == 1


def test_statistics_absent_without_readings() -> None:
    engine = _engine_with(["10"])

    assert engine.get_statistics("field-1", "Humidity") is None
    assert engine.get_statistics("other-field", "Temperature") is None


def test_trend_requires_two_readings() -> None:
    assert _engine_with([]).get_trend("field-1", "Temperature") is None
    assert _engine_with(["10"]).get_trend("field-1", "Temperature") is None


@pytest.mark.parametrize(
    ("change_rate", "expected"),
    [
        ("5.0", TrendDirection.stable),
        ("5.01", TrendDirection.increasing),
        ("-5.0", TrendDirection.stable),
        ("-5.01", TrendDirection.decreasing),
        ("0", TrendDirection.stable),
    ],
)
def test_classify_trend_bounds_are_exclusive(change_rate: str, expected: TrendDirection) -> None:
    assert classify_trend(Decimal(change_rate)) is expected


@pytest.mark.parametrize(
    ("recent_value", "expected_rate", "expected_trend"),
    [
        ("105", Decimal(5), TrendDirection.stable),
        ("105.01", Decimal("5.01"), TrendDirection.increasing),
        ("94.99", Decimal("-5.01"), TrendDirection.decreasing),
    ],
)
def test_trend_compares_recent_and_older_windows(
    recent_value: str, expected_rate: Decimal, expected_trend: TrendDirection
) -> None:
    engine = _engine_with(["100"] * 10 + [recent_value] * 10)

    trend = engine.get_trend("field-1", "Temperature")

    assert trend is not None
    assert trend.change_rate == expected_rate
    assert trend.trend is expected_trend


def test_trend_description_formats_rate_to_two_decimals() -> None:
    trend = _engine_with(["100"] * 10 + ["105.01"] * 10).get_trend("field-1", "Temperature")

    assert trend is not None
    assert trend.description == "Average Temperature changed by 5.01% over recent readings"


def test_trend_windows_overlap_with_short_history() -> None:
    # Three readings: both windows cover all of them.
    trend = _engine_with(["10", "20", "30"]).get_trend("field-1", "Temperature")

    assert trend is not None
    assert trend.change_rate == 0
    assert trend.trend is TrendDirection.stable


def test_trend_with_partially_overlapping_windows() -> None:
    # Twelve readings 1..12: older is 1..10 (avg 5.5), recent is 3..12 (avg 7.5).
    trend = _engine_with([str(v) for v in range(1, 13)]).get_trend("field-1", "Temperature")

    assert trend is not None
    assert trend.trend is TrendDirection.increasing
    assert trend.description == "Average Temperature changed by 36.36% over recent readings"


def test_trend_ignores_readings_before_the_last_twenty() -> None:
    engine = _engine_with(["1000"] * 5 + ["100"] * 10 + ["100"] * 10)

    trend = engine.get_trend("field-1", "Temperature")

    assert trend is not None
    assert trend.change_rate == 0


def test_trend_absent_when_older_average_is_zero() -> None:
    engine = _engine_with(["0"] * 10 + ["5"] * 10)

    assert engine.get_trend("field-1", "Temperature") is None


def test_trend_orders_by_timestamp_not_insertion() -> None:
    store = TimeSeriesStore()
    # Later (higher) readings are inserted first.
    for minute in reversed(range(20)):
        value = Decimal(200) if minute >= 10 else Decimal(100)
        store.append(
            "field-1",
            Reading(
                field_id="field-1",
                sensor_type="Humidity",
                value=value,
                reading_timestamp=_BASE + timedelta(minutes=minute),
            ),
        )

    trend = AnalyticsEngine(store).get_trend("field-1", "Humidity")

    assert trend is not None
    assert trend.trend is TrendDirection.increasing
    assert trend.change_rate == 100
