from datetime import datetime, timedelta, UTC

import duckdb
import pytest

from pipelines.aggregate import build_snapshot, latest_by_metric
from pipelines.model import CityMetric
from pipelines.result import ResultKind
from scoring.engine import compute
from scoring.model import MetricInput
from storage.db import (
    connect,
    fetch_city_metrics,
    fetch_latest_feature_set,
    fetch_rankings,
    load_metric_input,
    upsert_city_metrics,
    upsert_feature_set,
)
from storage.exports import export_city_metrics

LOADED = datetime(2025, 6, 1, 6, 0, tzinfo=UTC)


def _metric(metric, value, observed_at, *, source="world_bank", city_slug="austin", loaded_at=LOADED):
    return CityMetric(
        source=source,
        city_slug=city_slug,
        city_name=city_slug.replace("-", " ").title(),
        observed_at=observed_at,
        metric=metric,
        value=value,
        unit="x",
        loaded_at=loaded_at,
    )


@pytest.fixture()
def conn(tmp_path):
    connection = connect(tmp_path / "cityatlas.duckdb")
    try:
        yield connection
    finally:
        connection.close()


def test_latest_observation_wins():
    older = _metric("unemployment_rate", 4.5, datetime(2022, 1, 1, tzinfo=UTC))
    newer = _metric("unemployment_rate", 3.9, datetime(2023, 1, 1, tzinfo=UTC))
    future = _metric("unemployment_rate", 2.0, datetime(2030, 1, 1, tzinfo=UTC))
    unrelated = _metric("median_rent", 2000, datetime(2023, 1, 1, tzinfo=UTC))

    latest = latest_by_metric([older, newer, future, unrelated], as_of=datetime(2025, 1, 1, tzinfo=UTC))

    assert set(latest) == {"unemployment_rate"}
    assert latest["unemployment_rate"].value == pytest.approx(3.9)


def test_build_snapshot_without_metrics_is_not_found():
    result = build_snapshot([], city_slug="austin")

    assert result.kind is ResultKind.NOT_FOUND
    assert not result.ok
    with pytest.raises(ValueError):
        result.unwrap()


def test_build_snapshot_rejects_non_finite_values():
    result = build_snapshot(
        [_metric("gdp_per_capita", float("nan"), datetime(2023, 1, 1, tzinfo=UTC))],
        city_slug="austin",
    )

    assert result.kind is ResultKind.VALIDATION_ERROR


def test_upsert_and_load_snapshot(conn):
    records = [
        _metric("gdp_per_capita", 81_000, datetime(2022, 1, 1, tzinfo=UTC)),
        _metric("gdp_per_capita", 85_000, datetime(2023, 1, 1, tzinfo=UTC)),
        _metric("population", 979_882, datetime(2024, 1, 1, tzinfo=UTC), source="catalog"),
        _metric("air_quality_index", 45, datetime(2025, 6, 1, 5, tzinfo=UTC), source="openaq"),
        _metric("population", 650_000, datetime(2024, 1, 1, tzinfo=UTC), source="catalog", city_slug="boston"),
    ]

    assert upsert_city_metrics(conn, records) == 5
    # re-loading the same observations replaces rather than duplicates
    assert upsert_city_metrics(conn, records[:2]) == 2
    assert len(fetch_city_metrics(conn, "austin")) == 4

    stored = fetch_city_metrics(conn, "austin", metric="gdp_per_capita")
    assert [m.value for m in stored] == [85_000, 81_000]
    assert stored[0].observed_at == datetime(2023, 1, 1, tzinfo=UTC)

    result = load_metric_input(conn, "austin", city_name="Austin")
    assert result.ok
    snapshot = result.unwrap()
    assert snapshot.metrics == MetricInput(gdp_per_capita=85_000, population=979_882, air_quality_index=45)
    assert snapshot.as_of == LOADED


def test_load_metric_input_for_unknown_city(conn):
    result = load_metric_input(conn, "atlantis")

    assert result.kind is ResultKind.NOT_FOUND
    assert "atlantis" in result.detail


def test_feature_sets_and_rankings(conn):
    now = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
    strong = compute(
        MetricInput(gdp_per_capita=95_000, unemployment_rate=3.0, air_quality_index=30, population=600_000),
        now,
        city_slug="seattle",
        city_name="Seattle",
        now=now,
    )
    weak = compute(
        MetricInput(gdp_per_capita=30_000, unemployment_rate=9.0, air_quality_index=150),
        now,
        city_slug="boston",
        city_name="Boston",
        now=now,
    )
    empty = compute(MetricInput(), now, city_slug="austin", city_name="Austin", now=now)
    earlier = compute(
        MetricInput(gdp_per_capita=10_000),
        now - timedelta(days=1),
        city_slug="boston",
        city_name="Boston",
        now=now,
    )

    for features in (strong, weak, empty, earlier):
        upsert_feature_set(conn, features, computed_at=now)
    # same city and date replaces the earlier row
    upsert_feature_set(conn, strong, computed_at=now + timedelta(hours=1))

    assert fetch_latest_feature_set(conn, "seattle") == strong
    assert fetch_latest_feature_set(conn, "boston") == weak
    assert fetch_latest_feature_set(conn, "atlantis") is None

    rankings = fetch_rankings(conn, score="overall", limit=10)
    assert [f.city_slug for f in rankings] == ["seattle", "boston"]

    assert [f.city_slug for f in fetch_rankings(conn, score="economy", limit=1)] == ["seattle"]
    with pytest.raises(ValueError):
        fetch_rankings(conn, score="vibes")


@pytest.mark.parametrize("fmt", ["csv", "parquet"])
def test_export_city_metrics(conn, tmp_path, fmt):
    upsert_city_metrics(
        conn,
        [
            _metric("gdp_per_capita", 85_000, datetime(2023, 1, 1, tzinfo=UTC)),
            _metric("unemployment_rate", 3.9, datetime(2023, 1, 1, tzinfo=UTC)),
            _metric("population", 650_000, datetime(2024, 1, 1, tzinfo=UTC), city_slug="boston"),
        ],
    )

    dest = export_city_metrics(conn, tmp_path / "out" / f"austin.{fmt}", fmt, city_slug="austin")

    assert dest.exists()
    reader = "read_csv_auto" if fmt == "csv" else "read_parquet"
    check = duckdb.connect()
    try:
        rows = check.execute(f"SELECT metric FROM {reader}(?) ORDER BY metric", [str(dest)]).fetchall()
    finally:
        check.close()
    assert [row[0] for row in rows] == ["gdp_per_capita", "unemployment_rate"]


def test_export_rejects_unknown_format(conn, tmp_path):
    with pytest.raises(ValueError):
        export_city_metrics(conn, tmp_path / "austin.xlsx", "xlsx", city_slug="austin")
