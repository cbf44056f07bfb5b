"""Canonical data model for raw city metrics ingested from external APIs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from scoring.model import METRIC_DISPLAY_NAMES, MetricInput


class CityMetric(BaseModel):
    """Normalized representation of a single raw city metric observation."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    source: str = Field(
        ..., description="Upstream API or dataset identifier (e.g. 'world_bank', 'openaq')."
    )
    city_slug: str = Field(
        ..., description="URL-friendly city identifier (e.g. 'san-francisco')."
    )
    city_name: str = Field(..., description="Human-readable city name suitable for display.")
    observed_at: datetime = Field(
        ...,
        description="Timestamp representing when the metric was observed or is effective.",
    )
    metric: str = Field(
        ..., description="MetricInput field name (e.g. 'gdp_per_capita', 'air_quality_index')."
    )
    value: float = Field(
        ..., description="Numeric value of the observed metric normalized to float."
    )
    unit: str = Field(
        ..., description="Measurement unit associated with the value (e.g. 'USD', '%', 'AQI')."
    )
    loaded_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When CityAtlas fetched the observation.",
    )
    raw_payload: Optional[Any] = Field(
        default=None,
        description="Raw upstream payload segment retained for traceability and debugging.",
    )

    @property
    def is_scoring_input(self) -> bool:
        return self.metric in METRIC_DISPLAY_NAMES


class MetricSnapshot(BaseModel):
    """Everything known about a city at ``as_of``, ready to hand to the score engine."""

    model_config = ConfigDict(frozen=True)

    city_slug: str
    city_name: str
    as_of: datetime
    metrics: MetricInput


__all__ = ["CityMetric", "MetricSnapshot"]
