"""Unit tests for the bounded in-memory time series store."""

from __future__ import annotations

import random
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.schemas import Reading
from datastore.time_series import TimeSeriesStore

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _reading(minute: int, field_id: str = "field-1", sensor_type: str = "Temperature") -> Reading:
    return Reading(
        field_id=field_id,
        sensor_type=sensor_type,
        value=Decimal(minute),
        unit="Celsius",
        reading_timestamp=_BASE + timedelta(minutes=minute),
    )


def test_append_then_query_returns_matching_readings() -> None:
    store = TimeSeriesStore()
    store.append("field-1", _reading(1))
    store.append("field-1", _reading(2, sensor_type="Humidity"))

    temperatures = store.query("field-1", "Temperature")

    assert [entry.value for entry in temperatures] == [Decimal(1)]
    assert store.count("field-1") == 2


def test_query_matches_sensor_type_case_insensitively() -> None:
    store = TimeSeriesStore()
    store.append("field-1", _reading(1, sensor_type="SoilMoisture"))

    assert len(store.query("field-1", "soilmoisture")) == 1
    assert len(store.query("field-1", "SOILMOISTURE")) == 1


def test_query_unknown_field_returns_empty_list() -> None:
    assert TimeSeriesStore().query("missing", "Temperature") == []


def test_query_returns_a_snapshot() -> None:
    store = TimeSeriesStore()
    store.append("field-1", _reading(1))

    snapshot = store.query("field-1", "Temperature")
    store.append("field-1", _reading(2))

    assert len(snapshot) == 1
    assert len(store.query("field-1", "Temperature")) == 2


def test_store_keeps_original_values_not_normalized_ones() -> None:
    store = TimeSeriesStore()
    store.append(
        "field-1",
        Reading(field_id="field-1", sensor_type="Temperature", value=Decimal(60), unit="Fahrenheit"),
    )

    (entry,) = store.query("field-1", "Temperature")

    assert entry.value == Decimal(60)
    assert entry.unit == "Fahrenheit"


def test_legacy_reading_is_expanded_per_scalar() -> None:
    store = TimeSeriesStore()
    added = store.append(
        "field-1",
        Reading(
            field_id="field-1",
            soil_moisture=Decimal(22),
            air_temperature=Decimal(17),
            reading_timestamp=_BASE,
        ),
    )

    assert added == 2
    assert [entry.unit for entry in store.query("field-1", "SoilMoisture")] == ["Percent"]
    assert [entry.unit for entry in store.query("field-1", "AirTemperature")] == ["Celsius"]
    assert store.query("field-1", "Precipitation") == []


def test_fields_are_isolated() -> None:
    store = TimeSeriesStore()
    store.append("field-a", _reading(1, field_id="field-a"))
    store.append("field-b", _reading(2, field_id="field-b"))

    assert [entry.value for entry in store.query("field-a", "Temperature")] == [Decimal(1)]
    assert store.field_ids() == ["field-a", "field-b"]


def test_eviction_keeps_the_latest_readings_by_timestamp() -> None:
    store = TimeSeriesStore(limit=1000)
    minutes = list(range(1500))
    random.Random(7).shuffle(minutes)

    for minute in minutes:
        store.append("field-1", _reading(minute))

    stored = store.query("field-1", "Temperature")
    assert store.count("field-1") == 1000
    assert sorted(entry.value for entry in stored) == [Decimal(m) for m in range(500, 1500)]


def test_eviction_reorders_history_by_timestamp_descending() -> None:
    store = TimeSeriesStore(limit=3)
    for minute in (5, 1, 9, 3):
        store.append("field-1", _reading(minute))

    assert [entry.value for entry in store.query("field-1", "Temperature")] == [
        Decimal(9),
        Decimal(5),
        Decimal(3),
    ]


def test_concurrent_appends_to_one_field_lose_nothing() -> None:
    store = TimeSeriesStore(limit=5000)
    threads = [
        threading.Thread(
            target=lambda offset=offset: [
                store.append("field-1", _reading(offset * 1000 + i)) for i in range(300)
            ]
        )
        for offset in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.count("field-1") == 2400


def test_concurrent_appends_never_exceed_the_limit() -> None:
    store = TimeSeriesStore(limit=100)
    barrier = threading.Barrier(4)
    observed: list[int] = []

    def worker(offset: int) -> None:
        barrier.wait()
        for i in range(250):
            store.append("field-1", _reading(offset * 1000 + i))
            observed.append(store.count("field-1"))

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.count("field-1") == 100
    assert max(observed) <= 100


def test_clear_drops_all_history() -> None:
    store = TimeSeriesStore()
    store.append("field-1", _reading(1))

    store.clear()

    assert store.count("field-1") == 0
    assert store.field_ids() == []


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TimeSeriesStore(limit=0)
