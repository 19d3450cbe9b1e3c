"""Advisory text derived from a single normalized reading."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, NamedTuple


class _Advice(NamedTuple):
    low: Decimal
    low_message: str
    high: Decimal
    high_message: str


_RULES: Dict[str, _Advice] = {
    "temperature": _Advice(
        Decimal(10),
        "Low temperature detected. Consider protective measures.",
        Decimal(35),
        "High temperature detected. Consider irrigation or shading.",
    ),
    "humidity": _Advice(
        Decimal(30),
        "Low humidity detected. Consider increasing irrigation.",
        Decimal(80),
        "High humidity detected. Monitor for fungal diseases.",
    ),
    "soilmoisture": _Advice(
        Decimal(30),
        "Low soil moisture. Irrigation recommended.",
        Decimal(80),
        "High soil moisture. Risk of root rot.",
    ),
}


def recommend(sensor_type: str, normalized_value: Decimal) -> List[str]:
    """Return advisories for a reading; empty when the value is unremarkable.

    Bounds are strict, so a value exactly on a bound yields no advice.
    """
    rule = _RULES.get(sensor_type.lower())
    if rule is None:
        return []
    if normalized_value > rule.high:
        return [rule.high_message]
    if normalized_value < rule.low:
        return [rule.low_message]
    return []
