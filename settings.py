from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_QUEUE_NAME_ENV = "RABBITMQ_QUEUE"
_DEAD_LETTER_QUEUE_ENV = "RABBITMQ_DEAD_LETTER_QUEUE"
_QUEUE_HOST_ENV = "RABBITMQ_HOST"
_QUEUE_PORT_ENV = "RABBITMQ_PORT"
_QUEUE_USER_ENV = "RABBITMQ_USER"
_QUEUE_PASSWORD_ENV = "RABBITMQ_PASSWORD"
_PREFETCH_ENV = "RABBITMQ_PREFETCH"
_API_BASE_URL_ENV = "API_BASE_URL"
_SINK_TIMEOUT_ENV = "SINK_TIMEOUT_SECONDS"
_RELAY_WORKER_COUNT_ENV = "RELAY_WORKER_COUNT"
_MAX_DELIVERY_ATTEMPTS_ENV = "RELAY_MAX_DELIVERY_ATTEMPTS"
_WORKER_COUNT_ENV = "PROCESSOR_WORKER_COUNT"
_HISTORY_LIMIT_ENV = "HISTORY_LIMIT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    queue_name: str
    dead_letter_queue: str
    queue_host: str
    queue_port: int
    queue_user: str
    queue_password: str
    prefetch_count: int
    api_base_url: str
    sink_timeout: float
    relay_workers: int
    max_delivery_attempts: int
    processor_workers: int
    history_limit: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    queue_name = _read_str_env(_QUEUE_NAME_ENV, "sensor.readings")
    return Settings(
        queue_name=queue_name,
        dead_letter_queue=_read_optional_env(_DEAD_LETTER_QUEUE_ENV)
        or f"{queue_name}.dead-letter",
        queue_host=_read_str_env(_QUEUE_HOST_ENV, "localhost"),
        queue_port=_read_positive_int(_QUEUE_PORT_ENV, 5672),
        queue_user=_read_str_env(_QUEUE_USER_ENV, "guest"),
        queue_password=_read_str_env(_QUEUE_PASSWORD_ENV, "guest"),
        prefetch_count=_read_positive_int(_PREFETCH_ENV, 10),
        api_base_url=_read_str_env(_API_BASE_URL_ENV, "http://localhost:5000/"),
        sink_timeout=_read_positive_float(_SINK_TIMEOUT_ENV, 30.0),
        relay_workers=_read_positive_int(_RELAY_WORKER_COUNT_ENV, 4),
        max_delivery_attempts=_read_positive_int(_MAX_DELIVERY_ATTEMPTS_ENV, 5),
        processor_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        history_limit=_read_positive_int(_HISTORY_LIMIT_ENV, 1000),
        log_level=_read_log_level("INFO"),
    )
