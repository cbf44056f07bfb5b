"""Static city facts maintained in the city catalog rather than fetched remotely."""

from __future__ import annotations

from datetime import datetime

from pipelines.model import CityMetric


def catalog_metrics(
    *,
    city_slug: str,
    city_name: str,
    observed_at: datetime,
    population: int | None = None,
    cost_of_living_index: float | None = None,
) -> list[CityMetric]:
    metrics: list[CityMetric] = []
    if population is not None:
        metrics.append(
            CityMetric(
                source="catalog",
                city_slug=city_slug,
                city_name=city_name,
                observed_at=observed_at,
                metric="population",
                value=float(population),
                unit="count",
            )
        )
    if cost_of_living_index is not None:
        metrics.append(
            CityMetric(
                source="catalog",
                city_slug=city_slug,
                city_name=city_name,
                observed_at=observed_at,
                metric="cost_of_living_index",
                value=float(cost_of_living_index),
                unit="index",
            )
        )
    return metrics


__all__ = ["catalog_metrics"]
