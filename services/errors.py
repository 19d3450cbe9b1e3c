"""Exceptions raised at the I/O edges of the telemetry services."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base exception for telemetry service failures."""


class MessageDecodeError(TelemetryError):
    """Raised when a queue message is not a UTF-8 JSON reading."""


class SinkRejectedError(TelemetryError):
    """Raised when the ingestion API answers with a non-success status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Ingestion API returned {status_code}: {body or 'no body'}")
        self.status_code = status_code
        self.body = body
