"""Assembly of the per-reading insight bundle."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, List

from models.records import SensorReading
from services.analytics import AnalyticsEngine
from services.normalizer import normalize
from services.recommendations import recommend


class InsightGenerator:
    """Combines field analytics with advisories for one resolved reading."""

    def __init__(
        self,
        analytics: AnalyticsEngine,
        recommender: Callable[[str, Decimal], List[str]] = recommend,
    ) -> None:
        self.analytics = analytics
        self.recommender = recommender

    def generate(self, resolved: SensorReading) -> Dict[str, Any]:
        """Return ``trend``, ``statistics`` and ``recommendations`` when available.

        Missing analytics and empty advice are left out rather than set to
        ``None``.
        """
        insights: Dict[str, Any] = {}

        trend = self.analytics.get_trend(resolved.field_id, resolved.sensor_type)
        if trend is not None:
            insights["trend"] = trend

        statistics = self.analytics.get_statistics(resolved.field_id, resolved.sensor_type)
        if statistics is not None:
            insights["statistics"] = statistics

        normalized = normalize(resolved.sensor_type, resolved.value, resolved.unit)
        recommendations = self.recommender(resolved.sensor_type, normalized)
        if recommendations:
            insights["recommendations"] = recommendations

        return insights
