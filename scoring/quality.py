"""Sanity checks over a raw metric snapshot before it is scored or served."""

from __future__ import annotations

from dataclasses import dataclass, field

from scoring.model import METRIC_DISPLAY_NAMES, MetricInput

WEAK_DATA_THRESHOLD = 30.0
MAX_AQI = 500.0


@dataclass(frozen=True)
class QualityReport:
    completeness: float
    issues: tuple[str, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_sufficient(self) -> bool:
        return not self.issues and self.completeness >= WEAK_DATA_THRESHOLD

    def summary(self) -> str:
        if self.is_sufficient:
            return f"Data quality: {self.completeness:.1f}% complete, {len(self.warnings)} warnings"
        return (
            f"Insufficient data: {self.completeness:.1f}% complete, "
            f"{len(self.issues)} issues, {len(self.warnings)} warnings"
        )

    def as_dict(self) -> dict:
        return {
            "completeness": self.completeness,
            "isSufficient": self.is_sufficient,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "summary": self.summary(),
        }


def check_metric_quality(metrics: MetricInput) -> QualityReport:
    """Flag missing fields and impossible magnitudes without rejecting anything.

    The score engine clamps out-of-range values, so these findings are meant
    for logs and operators rather than for blocking a computation.
    """

    warnings = [f"Missing {name}" for name in metrics.missing_display_names()]
    issues: list[str] = []

    if metrics.gdp_per_capita is not None and metrics.gdp_per_capita < 0:
        issues.append(f"Invalid GDP per capita: {metrics.gdp_per_capita}")
    if metrics.unemployment_rate is not None and not 0 <= metrics.unemployment_rate <= 100:
        issues.append(f"Invalid unemployment rate: {metrics.unemployment_rate}")
    if metrics.population is not None and metrics.population <= 0:
        issues.append(f"Invalid population: {metrics.population}")
    if metrics.air_quality_index is not None and not 0 <= metrics.air_quality_index <= MAX_AQI:
        issues.append(f"Invalid air quality index: {metrics.air_quality_index}")
    if metrics.cost_of_living_index is not None and metrics.cost_of_living_index <= 0:
        issues.append(f"Invalid cost of living index: {metrics.cost_of_living_index}")

    completeness = len(metrics.present_fields()) / len(METRIC_DISPLAY_NAMES) * 100.0
    return QualityReport(
        completeness=completeness,
        issues=tuple(issues),
        warnings=tuple(warnings),
    )


__all__ = ["QualityReport", "check_metric_quality", "WEAK_DATA_THRESHOLD"]
