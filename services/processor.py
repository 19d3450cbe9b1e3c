"""Processing pipeline for single readings and batches."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from functools import lru_cache
from typing import Iterable, List, Optional

from app.schemas import (
    BatchItem,
    BatchItemStatus,
    BatchResult,
    ProcessedReading,
    Reading,
)
from datastore.time_series import TimeSeriesStore, build_default_store
from services.analytics import AnalyticsEngine
from services.anomaly import AnomalyDetector
from services.insights import InsightGenerator
from services.normalizer import normalize, resolve
from settings import get_settings

logger = logging.getLogger(__name__)


class ProcessingPipeline:
    """Normalizes, classifies, records and enriches incoming readings."""

    def __init__(
        self,
        store: TimeSeriesStore,
        detector: AnomalyDetector,
        insights: InsightGenerator,
        workers: int = 4,
    ) -> None:
        self.store = store
        self.detector = detector
        self.insights = insights
        self.executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="pipeline"
        )

    def process_reading(self, reading: Reading) -> ProcessedReading:
        """Process one reading and return its immutable result.

        The original reading, not the normalized value, is what the history
        keeps.
        """
        resolved = resolve(reading)
        context = {"field_id": reading.field_id, "sensor_type": resolved.sensor_type}
        logger.info(
            "Processing reading: %s = %s %s",
            resolved.sensor_type,
            resolved.value,
            resolved.unit,
            extra=context,
        )

        normalized = normalize(resolved.sensor_type, resolved.value, resolved.unit)
        anomaly = self.detector.detect(reading, resolved)
        self.store.append(reading.field_id, reading)
        insights = self.insights.generate(resolved)

        processed = ProcessedReading(
            original_reading=reading,
            normalized_value=normalized,
            is_anomaly=anomaly.is_anomaly,
            anomaly_reason=anomaly.reason,
            insights=insights,
            processed_at=datetime.now(timezone.utc),
        )
        if anomaly.is_anomaly:
            logger.warning(
                "Anomalous reading detected",
                extra={**context, "reason": anomaly.reason},
            )
        logger.info(
            "Processed reading: anomaly=%s insights=%d",
            processed.is_anomaly,
            len(insights),
            extra=context,
        )
        return processed

    def process_batch(self, readings: Iterable[Reading]) -> BatchResult:
        """Process readings concurrently, isolating failures per item.

        A reading that raises becomes a ``failed`` item carrying the error
        message; the rest of the batch is still processed. Items keep the
        input order.
        """
        start_time = time.perf_counter()
        readings = list(readings)
        futures: List[Future[ProcessedReading]] = [
            self.executor.submit(self.process_reading, reading) for reading in readings
        ]

        items: List[BatchItem] = []
        for index, future in enumerate(futures):
            try:
                processed = future.result()
            except Exception as exc:
                logger.exception(
                    "Reading %d of batch failed",
                    index,
                    extra={"field_id": readings[index].field_id, "reason": str(exc)},
                )
                items.append(
                    BatchItem(
                        index=index,
                        status=BatchItemStatus.failed,
                        error=str(exc) or exc.__class__.__name__,
                    )
                )
                continue
            items.append(
                BatchItem(index=index, status=BatchItemStatus.succeeded, result=processed)
            )

        succeeded = sum(1 for item in items if item.status is BatchItemStatus.succeeded)
        anomalies = sum(1 for item in items if item.result is not None and item.result.is_anomaly)
        result = BatchResult(
            items=items,
            total=len(items),
            succeeded=succeeded,
            failed=len(items) - succeeded,
            anomalies=anomalies,
        )
        logger.info(
            "Batch processing completed",
            extra={
                "batch_size": result.total,
                "failed_count": result.failed,
                "anomaly_count": result.anomalies,
                "processing_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return result

    def shutdown(self) -> None:
        """Clean up executor resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)


@lru_cache
def build_default_pipeline(
    workers: Optional[int] = None,
) -> ProcessingPipeline:
    """Factory that wires the pipeline with the shared in-memory history."""
    settings = get_settings()
    store = build_default_store()
    detector = AnomalyDetector()
    insights = InsightGenerator(AnalyticsEngine(store))
    worker_count = workers or settings.processor_workers
    return ProcessingPipeline(
        store=store, detector=detector, insights=insights, workers=worker_count
    )
