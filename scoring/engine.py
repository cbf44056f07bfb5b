"""Deterministic, explainable city scores computed from raw metrics.

``compute`` turns a :class:`~scoring.model.MetricInput` snapshot into a
:class:`~scoring.model.FeatureSet`. It performs no I/O and keeps no state
between calls, so it is safe to call concurrently for any number of cities.

Composite weights::

    economy        = 0.40 gdp + 0.60 unemployment
    livability     = 0.35 cost of living + 0.35 aqi + 0.30 population
    sustainability = 1.00 aqi
    growth         = 0.50 population growth + 0.50 gdp growth
    overall        = 0.30 economy + 0.35 livability + 0.20 sustainability + 0.15 growth

Sub-composites scale the weights of the terms that are present up to 100%.
``overall`` does not: an absent sub-composite simply contributes nothing, so a
city with partial data never scores higher than it would with full data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Sequence

from scoring.model import METRIC_DISPLAY_NAMES, FeatureSet, MetricInput, Score, tier_for
from scoring.normalize import (
    normalize_air_quality_index,
    normalize_cost_of_living_index,
    normalize_gdp_growth_rate,
    normalize_gdp_per_capita,
    normalize_population,
    normalize_population_growth_rate,
    normalize_unemployment_rate,
)

logger = logging.getLogger(__name__)

ECONOMY_GDP_WEIGHT = 0.40
ECONOMY_UNEMPLOYMENT_WEIGHT = 0.60

LIVABILITY_COST_WEIGHT = 0.35
LIVABILITY_AQI_WEIGHT = 0.35
LIVABILITY_SIZE_WEIGHT = 0.30

SUSTAINABILITY_AQI_WEIGHT = 1.00

GROWTH_POPULATION_WEIGHT = 0.50
GROWTH_GDP_WEIGHT = 0.50

OVERALL_ECONOMY_WEIGHT = 0.30
OVERALL_LIVABILITY_WEIGHT = 0.35
OVERALL_SUSTAINABILITY_WEIGHT = 0.20
OVERALL_GROWTH_WEIGHT = 0.15

STALE_AFTER = timedelta(hours=24)

# (maximum age, recency multiplier); anything older gets the final fallback
RECENCY_STEPS: tuple[tuple[timedelta, float], ...] = (
    (timedelta(hours=24), 1.0),
    (timedelta(days=7), 0.85),
    (timedelta(days=30), 0.6),
)
RECENCY_FLOOR = 0.4


@dataclass(frozen=True)
class _Term:
    """One weighted input of a composite score."""

    label: str
    short: str
    points: float | None
    weight: float
    display: str = ""
    detail: str = ""
    classification: str = ""

    @property
    def present(self) -> bool:
        return self.points is not None


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


# ---------------------------------------------------------------------------
# Classification helpers used in component breakdowns
# ---------------------------------------------------------------------------


def _classify_gdp(gdp: float) -> str:
    if gdp >= 100_000:
        return "wealthy"
    if gdp >= 60_000:
        return "prosperous"
    if gdp >= 40_000:
        return "comfortable"
    if gdp >= 25_000:
        return "developing"
    return "challenged"


def _classify_job_market(unemployment: float) -> str:
    if unemployment <= 3.0:
        return "excellent job market"
    if unemployment <= 5.0:
        return "healthy job market"
    if unemployment <= 7.0:
        return "moderate job market"
    if unemployment <= 10.0:
        return "competitive job market"
    return "struggling job market"


def _classify_affordability(index: float) -> str:
    if index <= 85:
        return "very affordable"
    if index <= 100:
        return "affordable"
    if index <= 120:
        return "moderate"
    if index <= 150:
        return "expensive"
    return "very expensive"


def _classify_air_quality(aqi: float) -> str:
    if aqi <= 50:
        return "good"
    if aqi <= 100:
        return "moderate"
    if aqi <= 150:
        return "unhealthy for sensitive groups"
    if aqi <= 200:
        return "unhealthy"
    return "very unhealthy"


def _classify_city_size(population: float) -> str:
    if population < 100_000:
        return "small city"
    if population < 500_000:
        return "mid-sized city"
    if population < 1_000_000:
        return "large city"
    if population < 5_000_000:
        return "major metropolitan"
    return "mega city"


def _classify_population_growth(rate: float) -> str:
    if rate >= 3.0:
        return "rapid growth"
    if rate >= 1.5:
        return "strong growth"
    if rate >= 0.5:
        return "moderate growth"
    if rate >= 0.0:
        return "stable"
    if rate >= -1.0:
        return "slow decline"
    return "significant decline"


def _classify_gdp_growth(rate: float) -> str:
    if rate >= 6.0:
        return "booming"
    if rate >= 3.0:
        return "strong expansion"
    if rate >= 1.5:
        return "healthy growth"
    if rate >= 0.0:
        return "stable"
    if rate >= -2.0:
        return "mild contraction"
    return "recession"


def _format_population(population: float) -> str:
    if population >= 1_000_000:
        return f"{population / 1_000_000:.1f}M"
    if population >= 1_000:
        return f"{population / 1_000:.0f}K"
    return f"{population:.0f}"


# ---------------------------------------------------------------------------
# Term builders
# ---------------------------------------------------------------------------


def _gdp_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("GDP per capita", "GDP", None, weight)
    return _Term(
        "GDP per capita",
        "GDP",
        normalize_gdp_per_capita(value),
        weight,
        display=f"${value / 1000:,.0f}K",
        detail=f"${value:,.0f}",
        classification=_classify_gdp(value),
    )


def _unemployment_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("Unemployment", "unemployment", None, weight)
    return _Term(
        "Unemployment",
        "unemployment",
        normalize_unemployment_rate(value),
        weight,
        display=f"{value:.1f}%",
        detail=f"{value:.1f}%",
        classification=_classify_job_market(value),
    )


def _cost_of_living_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("Cost of living index", "cost of living", None, weight)
    return _Term(
        "Cost of living index",
        "cost of living",
        normalize_cost_of_living_index(value),
        weight,
        display=f"index {value:.0f}",
        detail=f"{value:.0f}",
        classification=_classify_affordability(value),
    )


def _air_quality_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("Air quality (AQI)", "air quality", None, weight)
    return _Term(
        "Air quality (AQI)",
        "air quality",
        normalize_air_quality_index(value),
        weight,
        display=f"AQI {value:.0f}",
        detail=f"{value:.0f}",
        classification=_classify_air_quality(value),
    )


def _population_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("Population", "city size", None, weight)
    return _Term(
        "Population",
        "city size",
        normalize_population(value),
        weight,
        display=_format_population(value),
        detail=f"{value:,.0f}",
        classification=_classify_city_size(value),
    )


def _population_growth_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("Population growth", "population growth", None, weight)
    return _Term(
        "Population growth",
        "population growth",
        normalize_population_growth_rate(value),
        weight,
        display=f"{value:+.1f}%",
        detail=f"{value:.1f}% YoY",
        classification=_classify_population_growth(value),
    )


def _gdp_growth_term(value: float | None, weight: float) -> _Term:
    if value is None:
        return _Term("GDP growth", "GDP growth", None, weight)
    return _Term(
        "GDP growth",
        "GDP growth",
        normalize_gdp_growth_rate(value),
        weight,
        display=f"{value:+.1f}%",
        detail=f"{value:.1f}% YoY",
        classification=_classify_gdp_growth(value),
    )


def _score_term(label: str, score: Score, weight: float) -> _Term:
    if score.value is None:
        return _Term(f"{label} ({weight:.0%})", label.lower(), None, weight)
    return _Term(
        f"{label} ({weight:.0%})",
        label.lower(),
        score.value,
        weight,
        display=f"{score.value:.1f}",
        detail=f"{score.value:.1f}",
        classification=score.tier.value,
    )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def _qualifier(points: float) -> str:
    if points >= 70:
        return "strong"
    if points >= 40:
        return "moderate"
    return "weak"


def _explain(name: str, terms: Sequence[_Term]) -> str:
    """Name the strongest and weakest contributing factors in plain language."""

    present = [term for term in terms if term.present]
    if not present:
        return f"{name} score unavailable"

    best = max(present, key=lambda term: term.points)
    best_phrase = f"{best.short} ({best.display})"
    best_qualifier = _qualifier(best.points)
    if len(present) == 1:
        return f"{best_qualifier.capitalize()} {best_phrase}"

    worst = min((term for term in present if term is not best), key=lambda term: term.points)
    worst_phrase = f"{worst.short} ({worst.display})"
    worst_qualifier = _qualifier(worst.points)
    if worst_qualifier == best_qualifier:
        return f"{best_qualifier.capitalize()} {best_phrase} and {worst_phrase}"
    return f"{best_qualifier.capitalize()} {best_phrase} offset by {worst_qualifier} {worst_phrase}"


def _describe(term: _Term, contribution: float) -> str:
    return (
        f"{term.label}: {term.detail} "
        f"({term.classification}, contributes {contribution:.1f} points)"
    )


def _unavailable(name: str) -> Score:
    return Score(value=None, explanation=f"{name} score unavailable", components=(), confidence=0.0)


def _composite(name: str, terms: Sequence[_Term]) -> Score:
    """Weighted mean of the present terms, rescaled to their combined weight."""

    present = [term for term in terms if term.present]
    if not present:
        return _unavailable(name)

    full_weight = sum(term.weight for term in terms)
    present_weight = sum(term.weight for term in present)
    value = _clamp(sum(term.points * term.weight for term in present) / present_weight)
    components = tuple(
        _describe(term, term.points * term.weight / present_weight) for term in present
    )
    return Score(
        value=value,
        explanation=_explain(name, terms),
        components=components,
        confidence=min(1.0, present_weight / full_weight),
    )


def _overall(terms: Sequence[_Term]) -> Score:
    """Fixed-weight sum of the present sub-scores; weights are not rescaled."""

    present = [term for term in terms if term.present]
    if not present:
        return _unavailable("Overall")

    value = _clamp(sum(term.points * term.weight for term in present))
    components = tuple(_describe(term, term.points * term.weight) for term in present)
    return Score(
        value=value,
        explanation=_explain("Overall", terms),
        components=components,
        confidence=min(1.0, round(sum(term.weight for term in present), 6)),
    )


def economy_score(metrics: MetricInput) -> Score:
    return _composite(
        "Economy",
        (
            _gdp_term(metrics.gdp_per_capita, ECONOMY_GDP_WEIGHT),
            _unemployment_term(metrics.unemployment_rate, ECONOMY_UNEMPLOYMENT_WEIGHT),
        ),
    )


def livability_score(metrics: MetricInput) -> Score:
    # air quality alone is scored as sustainability, not livability
    if metrics.cost_of_living_index is None and metrics.population is None:
        return _unavailable("Livability")
    return _composite(
        "Livability",
        (
            _cost_of_living_term(metrics.cost_of_living_index, LIVABILITY_COST_WEIGHT),
            _air_quality_term(metrics.air_quality_index, LIVABILITY_AQI_WEIGHT),
            _population_term(metrics.population, LIVABILITY_SIZE_WEIGHT),
        ),
    )


def sustainability_score(metrics: MetricInput) -> Score:
    return _composite(
        "Sustainability",
        (_air_quality_term(metrics.air_quality_index, SUSTAINABILITY_AQI_WEIGHT),),
    )


def growth_score(metrics: MetricInput) -> Score:
    return _composite(
        "Growth",
        (
            _population_growth_term(metrics.population_growth_rate, GROWTH_POPULATION_WEIGHT),
            _gdp_growth_term(metrics.gdp_growth_rate, GROWTH_GDP_WEIGHT),
        ),
    )


def overall_score(economy: Score, livability: Score, sustainability: Score, growth: Score) -> Score:
    return _overall(
        (
            _score_term("Economy", economy, OVERALL_ECONOMY_WEIGHT),
            _score_term("Livability", livability, OVERALL_LIVABILITY_WEIGHT),
            _score_term("Sustainability", sustainability, OVERALL_SUSTAINABILITY_WEIGHT),
            _score_term("Growth", growth, OVERALL_GROWTH_WEIGHT),
        )
    )


def recency_factor(age: timedelta) -> float:
    for max_age, factor in RECENCY_STEPS:
        if age <= max_age:
            return factor
    return RECENCY_FLOOR


def compute(
    metrics: MetricInput,
    as_of: datetime,
    *,
    city_slug: str = "",
    city_name: str = "",
    now: datetime | None = None,
) -> FeatureSet:
    """Score one city snapshot.

    ``as_of`` is when the metric snapshot was taken; ``now`` is the reference
    time for staleness and recency (defaults to the current UTC time). Naive
    datetimes are treated as UTC. Missing or out-of-range data never raises.
    """

    as_of_utc = _as_utc(as_of)
    now_utc = _as_utc(now) if now is not None else datetime.now(UTC)

    economy = economy_score(metrics)
    livability = livability_score(metrics)
    sustainability = sustainability_score(metrics)
    growth = growth_score(metrics)
    overall = overall_score(economy, livability, sustainability, growth)

    total_fields = len(METRIC_DISPLAY_NAMES)
    present_fraction = len(metrics.present_fields()) / total_fields
    age = now_utc - as_of_utc

    features = FeatureSet(
        city_slug=city_slug,
        city_name=city_name,
        computation_date=as_of_utc.date(),
        economy=economy,
        livability=livability,
        sustainability=sustainability,
        growth=growth,
        overall=overall,
        data_completeness=present_fraction * 100.0,
        confidence_score=present_fraction * recency_factor(age),
        missing_data=tuple(metrics.missing_display_names()),
        is_stale=age > STALE_AFTER,
    )

    logger.debug(
        "Scored %s: economy=%s livability=%s sustainability=%s growth=%s overall=%s",
        city_slug or "(anonymous)",
        economy.value,
        livability.value,
        sustainability.value,
        growth.value,
        overall.value,
    )
    return features


__all__ = [
    "STALE_AFTER",
    "compute",
    "economy_score",
    "growth_score",
    "livability_score",
    "overall_score",
    "recency_factor",
    "sustainability_score",
    "tier_for",
]
