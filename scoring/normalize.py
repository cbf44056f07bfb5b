"""Map raw city metrics onto a common 0-100 "goodness" scale.

Every function returns ``None`` for an absent input and clamps everything else
into ``[0, 100]``; out-of-range magnitudes never raise.
"""

from __future__ import annotations

import math

GDP_PER_CAPITA_CEILING = 100_000.0
UNEMPLOYMENT_CEILING = 15.0
AQI_CEILING = 300.0
POPULATION_IDEAL_MIN = 250_000.0
POPULATION_IDEAL_MAX = 1_000_000.0
# log10 distance from the ideal band at which the size score reaches zero
POPULATION_FALLOFF_DECADES = 2.0
POPULATION_GROWTH_RANGE = (-2.0, 5.0)
GDP_GROWTH_RANGE = (-5.0, 10.0)
COST_OF_LIVING_RANGE = (50.0, 250.0)


def _clamp(points: float) -> float:
    return max(0.0, min(100.0, points))


def scale(value: float, low: float, high: float) -> float:
    """Linear scale where ``low`` maps to 0 and ``high`` to 100."""

    return _clamp((value - low) / (high - low) * 100.0)


def scale_inverse(value: float, low: float, high: float) -> float:
    """Linear scale where ``low`` maps to 100 and ``high`` to 0."""

    return _clamp((high - value) / (high - low) * 100.0)


def normalize_gdp_per_capita(value: float | None) -> float | None:
    if value is None:
        return None
    return scale(value, 0.0, GDP_PER_CAPITA_CEILING)


def normalize_unemployment_rate(value: float | None) -> float | None:
    if value is None:
        return None
    return scale_inverse(value, 0.0, UNEMPLOYMENT_CEILING)


def normalize_air_quality_index(value: float | None) -> float | None:
    if value is None:
        return None
    return scale_inverse(value, 0.0, AQI_CEILING)


def normalize_population(value: float | None) -> float | None:
    """Prefer mid-size cities: full marks inside the ideal band, log falloff outside."""

    if value is None:
        return None
    log_value = math.log10(max(value, 1.0))
    log_min = math.log10(POPULATION_IDEAL_MIN)
    log_max = math.log10(POPULATION_IDEAL_MAX)
    if log_value < log_min:
        distance = log_min - log_value
    elif log_value > log_max:
        distance = log_value - log_max
    else:
        distance = 0.0
    return _clamp((1.0 - distance / POPULATION_FALLOFF_DECADES) * 100.0)


def normalize_population_growth_rate(value: float | None) -> float | None:
    if value is None:
        return None
    return scale(value, *POPULATION_GROWTH_RANGE)


def normalize_gdp_growth_rate(value: float | None) -> float | None:
    if value is None:
        return None
    return scale(value, *GDP_GROWTH_RANGE)


def normalize_cost_of_living_index(value: float | None) -> float | None:
    if value is None:
        return None
    return scale_inverse(value, *COST_OF_LIVING_RANGE)


__all__ = [
    "normalize_air_quality_index",
    "normalize_cost_of_living_index",
    "normalize_gdp_growth_rate",
    "normalize_gdp_per_capita",
    "normalize_population",
    "normalize_population_growth_rate",
    "normalize_unemployment_rate",
    "scale",
    "scale_inverse",
]
