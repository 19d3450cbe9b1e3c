"""Pydantic schemas for readings, processing output and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

# Decimals stay exact in memory and are emitted as JSON numbers.
JsonDecimal = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model accepting both camelCase wire names and snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Reading(CamelModel):
    """A single telemetry reading as submitted by a field device."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    field_id: str = Field(..., min_length=1, description="Opaque field identifier.")
    sensor_type: Optional[str] = None
    value: Optional[JsonDecimal] = None
    unit: Optional[str] = None
    reading_timestamp: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices(
            "readingTimestamp", "reading_timestamp", "timestamp"
        ),
    )
    created_at: datetime = Field(default_factory=_utcnow)
    soil_moisture: Optional[JsonDecimal] = None
    air_temperature: Optional[JsonDecimal] = None
    precipitation: Optional[JsonDecimal] = None
    is_rich_in_pests: Optional[bool] = None

    @field_validator("field_id", mode="before")
    @classmethod
    def _coerce_field_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("sensor_type", mode="before")
    @classmethod
    def _blank_sensor_type(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("reading_timestamp", "created_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def effective_timestamp(self) -> datetime:
        """Reading time, falling back to the creation time."""
        return self.reading_timestamp or self.created_at


class TrendDirection(str, Enum):
    """Direction of movement between the older and recent windows."""

    increasing = "Increasing"
    decreasing = "Decreasing"
    stable = "Stable"


class TrendAnalysis(CamelModel):
    trend: TrendDirection
    change_rate: JsonDecimal = Field(..., description="Percent change of the recent average.")
    description: str


class SensorStatistics(CamelModel):
    average: JsonDecimal
    min: JsonDecimal
    max: JsonDecimal
    count: int = Field(..., ge=1)


# Values of the insight bundle keyed by "trend", "statistics" and "recommendations".
InsightValue = Union[TrendAnalysis, SensorStatistics, List[str]]


class ProcessedReading(CamelModel):
    """Result of running one reading through the processing pipeline."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    original_reading: Reading
    normalized_value: Optional[JsonDecimal] = None
    is_anomaly: bool = False
    anomaly_reason: Optional[str] = None
    insights: Dict[str, InsightValue] = Field(default_factory=dict)
    processed_at: datetime = Field(default_factory=_utcnow)


class BatchItemStatus(str, Enum):
    succeeded = "succeeded"
    failed = "failed"


class BatchItem(CamelModel):
    """Outcome of one reading within a batch."""

    index: int = Field(..., ge=0)
    status: BatchItemStatus
    result: Optional[ProcessedReading] = None
    error: Optional[str] = None


class BatchResult(CamelModel):
    """Per-item outcomes of a batch, in input order."""

    items: List[BatchItem] = Field(default_factory=list)
    total: int = Field(0, ge=0)
    succeeded: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    anomalies: int = Field(0, ge=0)
