"""World Bank Open Data ingestor.

Country-level economic indicators are attributed to each catalogued city in
that country and normalized into ``CityMetric`` records.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Mapping

import httpx

from pipelines.common import coerce_float, fetch_json, is_upstream_unavailable
from pipelines.model import CityMetric

WORLD_BANK_BASE_URL = "https://api.worldbank.org/v2"

# World Bank indicator -> (MetricInput field, unit)
WORLD_BANK_INDICATORS: Mapping[str, tuple[str, str]] = {
    "NY.GDP.PCAP.CD": ("gdp_per_capita", "USD"),
    "SL.UEM.TOTL.ZS": ("unemployment_rate", "%"),
    "NY.GDP.MKTP.KD.ZG": ("gdp_growth_rate", "%"),
    "SP.POP.GROW": ("population_growth_rate", "%"),
}

logger = logging.getLogger(__name__)


def _latest_row(payload: Any) -> Mapping[str, Any] | None:
    """World Bank answers ``[metadata, rows]``; return the newest row with a value."""

    if not isinstance(payload, list) or len(payload) < 2:
        return None
    rows = payload[1]
    if not isinstance(rows, list):
        return None
    for row in rows:
        if isinstance(row, Mapping) and coerce_float(row.get("value")) is not None:
            return row
    return None


def _observed_at(row: Mapping[str, Any]) -> datetime | None:
    try:
        return datetime(int(str(row.get("date", "")).strip()), 1, 1, tzinfo=UTC)
    except ValueError:
        return None


async def fetch_world_bank_indicator(
    country_code: str,
    indicator: str,
    *,
    city_slug: str,
    city_name: str,
    most_recent_values: int = 5,
) -> CityMetric | None:
    """Fetch the most recent non-null value of one indicator for a country."""

    if indicator not in WORLD_BANK_INDICATORS:
        raise ValueError(f"Unsupported World Bank indicator '{indicator}'.")
    metric, unit = WORLD_BANK_INDICATORS[indicator]

    try:
        payload = await fetch_json(
            f"{WORLD_BANK_BASE_URL}/country/{country_code}/indicator/{indicator}",
            params={"format": "json", "mrv": most_recent_values, "per_page": most_recent_values},
        )
    except httpx.HTTPStatusError as exc:
        if is_upstream_unavailable(exc):
            raise
        logger.warning(
            "World Bank request failed for %s/%s status=%s. Skipping.",
            country_code,
            indicator,
            exc.response.status_code,
        )
        return None

    row = _latest_row(payload)
    if row is None:
        logger.warning("No World Bank data for %s/%s.", country_code, indicator)
        return None
    observed_at = _observed_at(row)
    if observed_at is None:
        logger.warning("Unparseable World Bank date for %s/%s: %r", country_code, indicator, row.get("date"))
        return None

    return CityMetric(
        source="world_bank",
        city_slug=city_slug,
        city_name=city_name,
        observed_at=observed_at,
        metric=metric,
        value=coerce_float(row.get("value")),
        unit=unit,
        raw_payload=dict(row),
    )


async def fetch_world_bank(
    country_code: str,
    *,
    city_slug: str,
    city_name: str,
    indicators: Mapping[str, tuple[str, str]] = WORLD_BANK_INDICATORS,
) -> list[CityMetric]:
    """Fetch every configured indicator for the city's country.

    An indicator whose upstream is unavailable is logged and skipped so the
    others still count; the error is re-raised only when no indicator could
    be fetched at all.
    """

    metrics: list[CityMetric] = []
    last_error: httpx.HTTPError | None = None
    for indicator in indicators:
        try:
            metric = await fetch_world_bank_indicator(
                country_code,
                indicator,
                city_slug=city_slug,
                city_name=city_name,
            )
        except httpx.HTTPError as exc:
            if not is_upstream_unavailable(exc):
                raise
            logger.warning(
                "World Bank unavailable for %s/%s: %s. Skipping indicator.",
                country_code,
                indicator,
                exc,
            )
            last_error = exc
            continue
        if metric is not None:
            metrics.append(metric)

    if last_error is not None and not metrics:
        raise last_error
    return metrics


__all__ = [
    "WORLD_BANK_BASE_URL",
    "WORLD_BANK_INDICATORS",
    "fetch_world_bank",
    "fetch_world_bank_indicator",
]
