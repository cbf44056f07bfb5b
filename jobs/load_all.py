"""End-to-end job that fetches city metrics, persists them and refreshes city scores."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, datetime
from typing import Iterable

import duckdb
import httpx
from dotenv import load_dotenv

from jobs.config import CityConfig, TARGET_CITIES, iter_cities
from pipelines.model import CityMetric
from pipelines.result import AcquisitionResult
from pipelines.sources.catalog import catalog_metrics
from pipelines.sources.openaq import fetch_openaq_aqi
from pipelines.sources.openweather import fetch_openweather_aqi
from pipelines.sources.world_bank import fetch_world_bank
from scoring.engine import compute
from scoring.model import FeatureSet
from scoring.quality import check_metric_quality
from storage.db import connect, load_metric_input, upsert_city_metrics, upsert_feature_set

load_dotenv()

logger = logging.getLogger(__name__)

LOAD_CITIES_ENV = "LOAD_CITIES"


async def gather_city_metrics(city: CityConfig) -> AcquisitionResult[list[CityMetric]]:
    """Run every source for a city.

    Reports ``upstream-unavailable`` only when a remote source failed and no
    remote metric was obtained; sources that are merely unconfigured or empty
    do not count as failures. Undecodable responses skip the source.
    """

    collected = catalog_metrics(
        city_slug=city.slug,
        city_name=city.name,
        observed_at=datetime(city.reference_year, 1, 1, tzinfo=UTC),
        population=city.population,
        cost_of_living_index=city.cost_of_living_index,
    )

    remote: list[CityMetric] = []
    failures: list[str] = []

    try:
        remote.extend(
            await fetch_world_bank(city.country_code, city_slug=city.slug, city_name=city.name)
        )
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("World Bank unavailable for %s: %s", city.slug, exc)
        failures.append("world_bank")

    air_quality: list[CityMetric] = []
    try:
        air_quality = await fetch_openaq_aqi(
            city_slug=city.slug,
            city_name=city.name,
            latitude=city.latitude,
            longitude=city.longitude,
        )
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("OpenAQ unavailable for %s: %s", city.slug, exc)
        failures.append("openaq")

    if not air_quality:
        try:
            air_quality = await fetch_openweather_aqi(
                city_slug=city.slug,
                city_name=city.name,
                latitude=city.latitude,
                longitude=city.longitude,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("OpenWeatherMap unavailable for %s: %s", city.slug, exc)
            failures.append("openweather")
    remote.extend(air_quality)

    if failures and not remote:
        return AcquisitionResult.upstream_unavailable(
            f"All upstream sources failed for '{city.slug}': {', '.join(failures)}."
        )
    return AcquisitionResult.success([*collected, *remote])


def score_city(
    conn: duckdb.DuckDBPyConnection,
    city: CityConfig,
    *,
    now: datetime | None = None,
) -> AcquisitionResult[FeatureSet]:
    """Score a city from whatever metrics are currently stored for it."""

    snapshot_result = load_metric_input(conn, city.slug, city_name=city.name)
    if not snapshot_result.ok:
        return AcquisitionResult(snapshot_result.kind, detail=snapshot_result.detail)

    snapshot = snapshot_result.unwrap()
    report = check_metric_quality(snapshot.metrics)
    if report.issues or not report.is_sufficient:
        logger.warning("%s: %s (%s)", city.slug, report.summary(), "; ".join(report.issues) or "no issues")
    else:
        logger.debug("%s: %s", city.slug, report.summary())

    features = compute(
        snapshot.metrics,
        snapshot.as_of,
        city_slug=city.slug,
        city_name=city.name,
        now=now,
    )
    return AcquisitionResult.success(features)


def _resolve_cities() -> tuple[CityConfig, ...]:
    requested = os.getenv(LOAD_CITIES_ENV)
    if requested:
        slugs = [slug.strip() for slug in requested.split(",") if slug.strip()]
        selected = tuple(iter_cities(slugs))
        if selected:
            return selected
        logger.warning(
            "LOAD_CITIES=%s did not match any configured cities; falling back to defaults.",
            requested,
        )

    return TARGET_CITIES


async def load_all_async(
    cities: Iterable[CityConfig] | None = None,
    *,
    now: datetime | None = None,
) -> int:
    """Fetch metrics for every city, persist them and store fresh feature sets.

    Returns the number of feature sets written.
    """

    cities = tuple(cities) if cities is not None else _resolve_cities()
    computed = 0
    conn = connect()
    try:
        for city in cities:
            logger.info("Fetching metrics for %s (%s)...", city.name, city.slug)
            gathered = await gather_city_metrics(city)
            if not gathered.ok:
                logger.warning("%s; skipping write.", gathered.detail)
                continue
            written = upsert_city_metrics(conn, gathered.unwrap())
            logger.info("Persisted %s metric records for %s.", written, city.slug)

            scored = score_city(conn, city, now=now)
            if not scored.ok:
                logger.warning("Could not score %s (%s): %s", city.slug, scored.kind.value, scored.detail)
                continue
            features = scored.unwrap()
            upsert_feature_set(conn, features, computed_at=now)
            logger.info(
                "Scored %s: overall=%s (%s), completeness=%.0f%%",
                city.slug,
                f"{features.overall.value:.1f}" if features.overall.value is not None else "N/A",
                features.overall_tier.value,
                features.data_completeness,
            )
            computed += 1
        return computed
    finally:
        conn.close()


def main(cities: Iterable[CityConfig] | None = None) -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    computed = asyncio.run(load_all_async(cities))
    logger.info("Load-all job finished (feature sets written=%s).", computed)
    return 0


__all__ = ["gather_city_metrics", "load_all_async", "main", "score_city"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
