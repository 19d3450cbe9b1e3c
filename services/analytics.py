"""Trend and summary statistics over a field's reading history."""

from __future__ import annotations

import logging
from decimal import Decimal
from operator import attrgetter
from typing import Optional, Sequence

from app.schemas import SensorStatistics, TrendAnalysis, TrendDirection
from datastore.time_series import TimeSeriesStore
from models.records import SensorReading

logger = logging.getLogger(__name__)

TREND_WINDOW = 10
TREND_THRESHOLD = Decimal(5)


def classify_trend(change_rate: Decimal) -> TrendDirection:
    """Map a percent change to a direction; the +/-5% bounds are exclusive."""
    if change_rate > TREND_THRESHOLD:
        return TrendDirection.increasing
    if change_rate < -TREND_THRESHOLD:
        return TrendDirection.decreasing
    return TrendDirection.stable


def _average(readings: Sequence[SensorReading]) -> Decimal:
    return sum((reading.value for reading in readings), Decimal(0)) / len(readings)


class AnalyticsEngine:
    """Read-only analytics component backed by a :class:`TimeSeriesStore`."""

    def __init__(self, store: TimeSeriesStore) -> None:
        self.store = store

    def get_trend(self, field_id: str, sensor_type: str) -> Optional[TrendAnalysis]:
        """Compare the average of the latest readings against older ones.

        ``recent`` is the last ten readings; ``older`` is up to ten readings
        starting twenty from the end. With fewer than twenty readings the two
        windows overlap. Returns ``None`` with fewer than two readings or when
        the older average is zero.
        """
        readings = sorted(self.store.query(field_id, sensor_type), key=attrgetter("timestamp"))
        if len(readings) < 2:
            return None

        recent = readings[-TREND_WINDOW:]
        start = max(0, len(readings) - 2 * TREND_WINDOW)
        older = readings[start : start + TREND_WINDOW]
        if not recent or not older:
            return None

        older_avg = _average(older)
        if older_avg == 0:
            logger.debug(
                "Older average is zero; no trend available",
                extra={"field_id": field_id, "sensor_type": sensor_type},
            )
            return None

        change_rate = (_average(recent) - older_avg) / older_avg * 100
        trend = classify_trend(change_rate)
        logger.info(
            "Trend analysis: %s (%.2f%%)",
            trend.value,
            change_rate,
            extra={"field_id": field_id, "sensor_type": sensor_type},
        )
        return TrendAnalysis(
            trend=trend,
            change_rate=change_rate,
            description=(
                f"Average {sensor_type} changed by {change_rate:.2f}% over recent readings"
            ),
        )

    def get_statistics(self, field_id: str, sensor_type: str) -> Optional[SensorStatistics]:
        readings = self.store.query(field_id, sensor_type)
        if not readings:
            return None

        values = [reading.value for reading in readings]
        stats = SensorStatistics(
            average=sum(values, Decimal(0)) / len(values),
            min=min(values),
            max=max(values),
            count=len(values),
        )
        logger.info(
            "Statistics: avg=%s min=%s max=%s count=%d",
            stats.average,
            stats.min,
            stats.max,
            stats.count,
            extra={"field_id": field_id, "sensor_type": sensor_type},
        )
        return stats
