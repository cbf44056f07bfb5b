"""OpenAQ (v3) air quality ingestor.

Finds the nearest monitoring location with a PM2.5 sensor and converts its
latest reading into a US AQI ``CityMetric``.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from typing import Any, Iterable, Mapping

import httpx

from pipelines.aqi import aqi_category, pm25_to_aqi
from pipelines.common import coerce_float, fetch_json, is_upstream_unavailable
from pipelines.model import CityMetric

OPENAQ_BASE_URL = "https://api.openaq.org/v3"
OPENAQ_PM25_PARAMETER_ID = 2
DEFAULT_RADIUS_METERS = 25_000

logger = logging.getLogger(__name__)


def _resolve_api_key(api_key: str | None) -> str | None:
    resolved = api_key or os.getenv("OPENAQ_API_KEY")
    if not resolved:
        logger.warning(
            "OpenAQ API key missing. Skipping OpenAQ fetch. Set OPENAQ_API_KEY or pass api_key explicitly."
        )
    return resolved


def _results(payload: Any) -> list[Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        return []
    results = payload.get("results")
    if not isinstance(results, list):
        return []
    return [item for item in results if isinstance(item, Mapping)]


def _pm25_sensor_ids(location: Mapping[str, Any]) -> set[int]:
    sensors = location.get("sensors")
    if not isinstance(sensors, list):
        return set()
    ids: set[int] = set()
    for sensor in sensors:
        if not isinstance(sensor, Mapping):
            continue
        parameter = sensor.get("parameter")
        if isinstance(parameter, Mapping) and parameter.get("name") == "pm25":
            sensor_id = sensor.get("id")
            if isinstance(sensor_id, int):
                ids.add(sensor_id)
    return ids


def _parse_timestamp(measurement: Mapping[str, Any]) -> datetime | None:
    stamp = measurement.get("datetime")
    if isinstance(stamp, Mapping):
        stamp = stamp.get("utc")
    if not isinstance(stamp, str):
        return None
    try:
        parsed = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _latest_pm25(
    measurements: Iterable[Mapping[str, Any]], sensor_ids: set[int]
) -> tuple[float, datetime, Mapping[str, Any]] | None:
    best: tuple[float, datetime, Mapping[str, Any]] | None = None
    for measurement in measurements:
        if measurement.get("sensorsId") not in sensor_ids:
            continue
        value = coerce_float(measurement.get("value"))
        observed_at = _parse_timestamp(measurement)
        if value is None or observed_at is None:
            continue
        if best is None or observed_at > best[1]:
            best = (value, observed_at, measurement)
    return best


async def fetch_openaq_aqi(
    *,
    city_slug: str,
    city_name: str,
    latitude: float,
    longitude: float,
    radius_meters: int = DEFAULT_RADIUS_METERS,
    api_key: str | None = None,
) -> list[CityMetric]:
    """Return at most one ``air_quality_index`` metric for the given coordinates."""

    resolved_key = _resolve_api_key(api_key)
    if not resolved_key:
        return []
    headers = {"X-API-Key": resolved_key, "Accept": "application/json"}

    try:
        locations_payload = await fetch_json(
            f"{OPENAQ_BASE_URL}/locations",
            headers=headers,
            params={
                "coordinates": f"{latitude},{longitude}",
                "radius": radius_meters,
                "parameters_id": OPENAQ_PM25_PARAMETER_ID,
                "limit": 5,
            },
        )
        for location in _results(locations_payload):
            sensor_ids = _pm25_sensor_ids(location)
            if not sensor_ids:
                continue
            latest_payload = await fetch_json(
                f"{OPENAQ_BASE_URL}/locations/{location.get('id')}/latest",
                headers=headers,
            )
            latest = _latest_pm25(_results(latest_payload), sensor_ids)
            if latest is None:
                continue
            pm25, observed_at, measurement = latest
            aqi = pm25_to_aqi(pm25)
            if aqi is None:
                continue
            return [
                CityMetric(
                    source="openaq",
                    city_slug=city_slug,
                    city_name=city_name,
                    observed_at=observed_at,
                    metric="air_quality_index",
                    value=float(aqi),
                    unit="AQI",
                    raw_payload={
                        "location_id": location.get("id"),
                        "location_name": location.get("name"),
                        "pm25": pm25,
                        "category": aqi_category(aqi),
                        "measurement": dict(measurement),
                    },
                )
            ]
    except httpx.HTTPStatusError as exc:
        if is_upstream_unavailable(exc):
            raise
        logger.warning(
            "OpenAQ request failed for %s status=%s. Skipping.",
            city_slug,
            exc.response.status_code,
        )
        return []

    logger.warning("No OpenAQ PM2.5 readings near %s.", city_slug)
    return []


__all__ = ["OPENAQ_BASE_URL", "fetch_openaq_aqi"]
