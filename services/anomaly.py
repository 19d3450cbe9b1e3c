"""Classification of readings as anomalous or in range."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from app.schemas import Reading
from models.records import SensorReading
from services.normalizer import normalize
from services.thresholds import Threshold, lookup_threshold

PEST_REASON = "Pest indicators present"


@dataclass(frozen=True)
class AnomalyResult:
    is_anomaly: bool
    reason: Optional[str] = None


_IN_RANGE = AnomalyResult(is_anomaly=False)


class AnomalyDetector:
    """Flags pest indicators and values outside the sensor type's threshold."""

    def __init__(
        self, thresholds: Callable[[str], Optional[Threshold]] = lookup_threshold
    ) -> None:
        self._lookup = thresholds

    def detect(self, reading: Reading, resolved: SensorReading) -> AnomalyResult:
        if reading.is_rich_in_pests is True:
            return AnomalyResult(is_anomaly=True, reason=PEST_REASON)

        threshold = self._lookup(resolved.sensor_type)
        if threshold is None:
            return _IN_RANGE

        value = normalize(resolved.sensor_type, resolved.value, resolved.unit)
        if value < threshold.min:
            return AnomalyResult(
                is_anomaly=True,
                reason=f"Value {value} is below minimum threshold {threshold.min}",
            )
        if value > threshold.max:
            return AnomalyResult(
                is_anomaly=True,
                reason=f"Value {value} is above maximum threshold {threshold.max}",
            )
        return _IN_RANGE
