"""HTTP client for the downstream ingestion and alerts API."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from services.errors import SinkRejectedError
from settings import get_settings

logger = logging.getLogger(__name__)

INGESTION_PATH = "/api/ingestion/single"
ALERTS_PATH = "/api/alerts"
ALERTS_UPDATE_PATH = "/api/alerts/update"


class ApiClient:
    """Minimal HTTP client for the downstream API.

    Forwarding a reading raises on failure so the relay can requeue the
    message. The alert calls are fire-and-forget: failures are logged and
    reported through the return value only.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def forward_reading(self, body: str) -> None:
        """POST a JSON reading to the ingestion endpoint.

        Raises :class:`SinkRejectedError` on a non-2xx answer; transport
        errors propagate as :class:`httpx.HTTPError`.
        """
        response = self._client.post(
            INGESTION_PATH,
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        if not response.is_success:
            logger.warning(
                "API returned %s when posting sensor reading: %s",
                response.status_code,
                response.text,
                extra={"status": response.status_code},
            )
            raise SinkRejectedError(response.status_code, response.text)
        logger.info("Sensor reading posted to API successfully")

    def create_alerts(self) -> bool:
        """Ask the API to evaluate and raise alerts."""
        return self._fire("POST", ALERTS_PATH, "Hourly alert creation")

    def deactivate_alerts(self) -> bool:
        """Ask the API to deactivate stale alerts."""
        return self._fire("PUT", ALERTS_UPDATE_PATH, "Daily alerts deactivation")

    def _fire(self, method: str, path: str, label: str) -> bool:
        logger.info("%s triggered", label)
        try:
            response = self._client.request(method, path)
        except httpx.HTTPError as exc:
            logger.warning("%s failed: %s", label, exc, extra={"reason": type(exc).__name__})
            return False
        if not response.is_success:
            logger.warning(
                "%s failed: %s",
                label,
                response.status_code,
                extra={"status": response.status_code},
            )
            return False
        return True


def build_default_client() -> ApiClient:
    settings = get_settings()
    return ApiClient(base_url=settings.api_base_url, timeout=settings.sink_timeout)
