from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_processed(payload: Dict[str, Any]) -> None:
    reading = payload.get("originalReading") or {}
    echo_key_values(
        [
            ("fieldId", reading.get("fieldId")),
            ("sensorType", reading.get("sensorType")),
            ("value", reading.get("value")),
            ("unit", reading.get("unit")),
            ("normalizedValue", payload.get("normalizedValue")),
            ("isAnomaly", payload.get("isAnomaly")),
        ]
    )
    if payload.get("anomalyReason"):
        typer.secho(f"anomalyReason: {payload['anomalyReason']}", fg=typer.colors.YELLOW)

    insights = payload.get("insights") or {}
    trend = insights.get("trend")
    if trend:
        typer.echo(f"trend: {trend.get('trend')} ({trend.get('description')})")
    statistics = insights.get("statistics")
    if statistics:
        typer.echo(
            "statistics: "
            f"avg={statistics.get('average')} min={statistics.get('min')} "
            f"max={statistics.get('max')} count={statistics.get('count')}"
        )
    for recommendation in insights.get("recommendations") or []:
        typer.echo(f"  - {recommendation}")


def render_batch(payload: Dict[str, Any]) -> None:
    echo_heading("Batch Result")
    echo_key_values(
        [
            ("total", payload.get("total")),
            ("succeeded", payload.get("succeeded")),
            ("failed", payload.get("failed")),
            ("anomalies", payload.get("anomalies")),
        ]
    )

    for item in payload.get("items") or []:
        typer.echo()
        echo_heading(f"Reading {item.get('index')}")
        if item.get("status") == "failed":
            typer.secho(f"failed: {item.get('error')}", fg=typer.colors.RED)
            continue
        render_processed(item.get("result") or {})
