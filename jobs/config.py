"""Static catalog of the cities CityAtlas tracks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class CityConfig:
    """Identity, location and slow-moving facts for a tracked city."""

    slug: str
    name: str
    country_code: str
    latitude: float
    longitude: float
    population: int | None = None
    cost_of_living_index: float | None = None
    reference_year: int = 2024


TARGET_CITIES: tuple[CityConfig, ...] = (
    CityConfig(
        slug="san-francisco",
        name="San Francisco",
        country_code="US",
        latitude=37.7749,
        longitude=-122.4194,
        population=808_437,
        cost_of_living_index=179,
    ),
    CityConfig(
        slug="new-york",
        name="New York",
        country_code="US",
        latitude=40.7128,
        longitude=-74.0060,
        population=8_258_035,
        cost_of_living_index=187,
    ),
    CityConfig(
        slug="austin",
        name="Austin",
        country_code="US",
        latitude=30.2672,
        longitude=-97.7431,
        population=979_882,
        cost_of_living_index=103,
    ),
    CityConfig(
        slug="seattle",
        name="Seattle",
        country_code="US",
        latitude=47.6062,
        longitude=-122.3321,
        population=755_078,
        cost_of_living_index=152,
    ),
    CityConfig(
        slug="boston",
        name="Boston",
        country_code="US",
        latitude=42.3601,
        longitude=-71.0589,
        population=653_833,
        cost_of_living_index=162,
    ),
)


def get_city_by_slug(slug: str) -> CityConfig | None:
    for city in TARGET_CITIES:
        if city.slug == slug:
            return city
    return None


def iter_cities(slugs: Iterable[str] | None = None) -> Iterable[CityConfig]:
    if slugs is None:
        return TARGET_CITIES
    selected = []
    for slug in slugs:
        city = get_city_by_slug(slug)
        if city:
            selected.append(city)
    return tuple(selected)


__all__ = ["CityConfig", "TARGET_CITIES", "get_city_by_slug", "iter_cities"]
