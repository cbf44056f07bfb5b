"""OpenWeatherMap air pollution ingestor, used when OpenAQ has no nearby reading."""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from typing import Any, Mapping

import httpx

from pipelines.aqi import pm25_to_aqi
from pipelines.common import coerce_float, fetch_json, is_upstream_unavailable
from pipelines.model import CityMetric

OPENWEATHER_AIR_POLLUTION_URL = "https://api.openweathermap.org/data/2.5/air_pollution"

logger = logging.getLogger(__name__)


def _resolve_api_key(api_key: str | None) -> str | None:
    resolved = api_key or os.getenv("OPENWEATHER_API_KEY")
    if not resolved:
        logger.warning(
            "OpenWeatherMap API key missing. Skipping air pollution fetch. "
            "Set OPENWEATHER_API_KEY or pass api_key explicitly."
        )
    return resolved


def _first_entry(payload: Any) -> Mapping[str, Any] | None:
    if not isinstance(payload, Mapping):
        return None
    entries = payload.get("list")
    if not isinstance(entries, list) or not entries:
        return None
    entry = entries[0]
    return entry if isinstance(entry, Mapping) else None


async def fetch_openweather_aqi(
    *,
    city_slug: str,
    city_name: str,
    latitude: float,
    longitude: float,
    api_key: str | None = None,
) -> list[CityMetric]:
    """Convert the current PM2.5 concentration into a US AQI metric."""

    resolved_key = _resolve_api_key(api_key)
    if not resolved_key:
        return []

    try:
        payload = await fetch_json(
            OPENWEATHER_AIR_POLLUTION_URL,
            params={"lat": latitude, "lon": longitude, "appid": resolved_key},
        )
    except httpx.HTTPStatusError as exc:
        if is_upstream_unavailable(exc):
            raise
        logger.warning(
            "OpenWeatherMap request failed for %s status=%s. Skipping.",
            city_slug,
            exc.response.status_code,
        )
        return []

    entry = _first_entry(payload)
    components = entry.get("components") if entry else None
    if not isinstance(components, Mapping):
        logger.warning("OpenWeatherMap returned no pollution components for %s.", city_slug)
        return []

    aqi = pm25_to_aqi(coerce_float(components.get("pm2_5")))
    if aqi is None:
        return []

    timestamp = entry.get("dt")
    observed_at = (
        datetime.fromtimestamp(timestamp, tz=UTC)
        if isinstance(timestamp, (int, float))
        else datetime.now(UTC)
    )
    return [
        CityMetric(
            source="openweather",
            city_slug=city_slug,
            city_name=city_name,
            observed_at=observed_at,
            metric="air_quality_index",
            value=float(aqi),
            unit="AQI",
            raw_payload=dict(entry),
        )
    ]


__all__ = ["OPENWEATHER_AIR_POLLUTION_URL", "fetch_openweather_aqi"]
