"""Collapse raw metric observations into a scoring snapshot."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Iterable

from pydantic import ValidationError

from pipelines.model import CityMetric, MetricSnapshot
from pipelines.result import AcquisitionResult
from scoring.model import METRIC_DISPLAY_NAMES, MetricInput


def _utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment.astimezone(UTC)


def latest_by_metric(
    metrics: Iterable[CityMetric], *, as_of: datetime | None = None
) -> dict[str, CityMetric]:
    """Pick the newest observation per scoring field, ignoring anything after ``as_of``.

    Ties on ``observed_at`` go to the most recently loaded record.
    """

    cutoff = _utc(as_of) if as_of is not None else None
    latest: dict[str, CityMetric] = {}
    for metric in metrics:
        if not metric.is_scoring_input:
            continue
        if cutoff is not None and _utc(metric.observed_at) > cutoff:
            continue
        current = latest.get(metric.metric)
        key = (_utc(metric.observed_at), _utc(metric.loaded_at))
        if current is None or key > (_utc(current.observed_at), _utc(current.loaded_at)):
            latest[metric.metric] = metric
    return latest


def build_snapshot(
    metrics: Iterable[CityMetric],
    *,
    city_slug: str,
    city_name: str | None = None,
    as_of: datetime | None = None,
) -> AcquisitionResult[MetricSnapshot]:
    """Build the ``MetricInput`` the score engine consumes for one city.

    The snapshot's ``as_of`` is the most recent load time among the selected
    observations, i.e. how fresh the data behind the scores is.
    """

    selected = latest_by_metric(metrics, as_of=as_of)
    if not selected:
        return AcquisitionResult.not_found(f"No metrics stored for city '{city_slug}'.")

    try:
        metric_input = MetricInput(
            **{field: selected[field].value for field in METRIC_DISPLAY_NAMES if field in selected}
        )
    except ValidationError as exc:
        return AcquisitionResult.validation_error(
            f"Stored metrics for '{city_slug}' are not valid scoring input: {exc.error_count()} errors."
        )

    snapshot_time = max(_utc(metric.loaded_at) for metric in selected.values())
    if as_of is not None:
        snapshot_time = min(snapshot_time, _utc(as_of))
    resolved_name = city_name or next(iter(selected.values())).city_name
    return AcquisitionResult.success(
        MetricSnapshot(
            city_slug=city_slug,
            city_name=resolved_name,
            as_of=snapshot_time,
            metrics=metric_input,
        )
    )


__all__ = ["build_snapshot", "latest_by_metric"]
