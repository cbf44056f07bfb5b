"""Value objects consumed and produced by the score engine."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class Tier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    BELOW_AVERAGE = "below-average"
    POOR = "poor"
    UNAVAILABLE = "unavailable"


# MetricInput field -> display name, in the order missing data is reported.
METRIC_DISPLAY_NAMES: dict[str, str] = {
    "gdp_per_capita": "GDP per capita",
    "unemployment_rate": "Unemployment rate",
    "air_quality_index": "Air quality index",
    "population": "Population",
    "population_growth_rate": "Population growth rate",
    "gdp_growth_rate": "GDP growth rate",
    "cost_of_living_index": "Cost of living index",
}


def tier_for(value: float | None) -> Tier:
    """Bucket a 0-100 score; each band includes its lower bound."""

    if value is None:
        return Tier.UNAVAILABLE
    if value >= 80:
        return Tier.EXCELLENT
    if value >= 60:
        return Tier.GOOD
    if value >= 40:
        return Tier.AVERAGE
    if value >= 20:
        return Tier.BELOW_AVERAGE
    return Tier.POOR


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
    )


class MetricInput(_Frozen):
    """Raw per-city facts available for scoring. ``None`` means absent, not zero."""

    gdp_per_capita: Optional[float] = Field(default=None, description="USD per resident.")
    unemployment_rate: Optional[float] = Field(default=None, description="Percent of labour force.")
    air_quality_index: Optional[float] = Field(default=None, description="US EPA AQI.")
    population: Optional[float] = Field(default=None, description="Resident headcount.")
    population_growth_rate: Optional[float] = Field(
        default=None, description="Year-over-year population change in percent."
    )
    gdp_growth_rate: Optional[float] = Field(
        default=None, description="Year-over-year GDP change in percent."
    )
    cost_of_living_index: Optional[float] = Field(
        default=None, description="Cost of living relative to a national average of 100."
    )

    def present_fields(self) -> list[str]:
        return [name for name in METRIC_DISPLAY_NAMES if getattr(self, name) is not None]

    def missing_display_names(self) -> list[str]:
        return [
            display
            for name, display in METRIC_DISPLAY_NAMES.items()
            if getattr(self, name) is None
        ]


class Score(_Frozen):
    """One scored dimension. ``tier`` is always derived from ``value``."""

    value: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    explanation: str
    components: tuple[str, ...] = ()
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tier(self) -> Tier:
        return tier_for(self.value)

    @property
    def is_available(self) -> bool:
        return self.value is not None


class FeatureSet(_Frozen):
    """All scores for one city on one date, plus data quality indicators."""

    city_slug: str
    city_name: str
    computation_date: date
    economy: Score
    livability: Score
    sustainability: Score
    growth: Score
    overall: Score
    data_completeness: float = Field(ge=0.0, le=100.0)
    confidence_score: float = Field(ge=0.0, le=1.0)
    missing_data: tuple[str, ...] = ()
    is_stale: bool = False

    def has_all_scores(self) -> bool:
        return all(
            score.is_available
            for score in (self.economy, self.livability, self.sustainability, self.overall)
        )

    def is_high_quality(self) -> bool:
        return self.data_completeness >= 80.0 and self.confidence_score >= 0.8

    @property
    def overall_tier(self) -> Tier:
        return self.overall.tier

    def to_payload(self) -> dict:
        """JSON-ready dict using the public camelCase field names."""

        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "FeatureSet",
    "METRIC_DISPLAY_NAMES",
    "MetricInput",
    "Score",
    "Tier",
    "tier_for",
]
