"""DuckDB persistence utilities for raw city metrics and computed feature sets."""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

import duckdb

from pipelines.aggregate import build_snapshot
from pipelines.model import CityMetric, MetricSnapshot
from pipelines.result import AcquisitionResult
from scoring.model import FeatureSet

DB_ENV_VAR = "CITYATLAS_DB_PATH"
DEFAULT_DB_PATH = Path("data/cityatlas.duckdb")

CITY_METRICS_TABLE = "city_metrics"
CITY_FEATURES_TABLE = "city_features"

RANKABLE_SCORES = ("overall", "economy", "livability", "sustainability", "growth")


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


# TIMESTAMP columns hold naive UTC values
def _to_storage_time(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(UTC).replace(tzinfo=None)


def _from_storage_time(moment: datetime) -> datetime:
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment


def get_database_path(override: str | os.PathLike[str] | None = None) -> Path:
    """Resolve the DuckDB file path from an explicit override or environment variable."""

    if override is not None:
        return Path(override)
    env_value = os.getenv(DB_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def connect(
    path: str | os.PathLike[str] | None = None,
    *,
    read_only: bool = False,
    ensure: bool = True,
) -> duckdb.DuckDBPyConnection:
    """Create a DuckDB connection, optionally ensuring schema availability."""

    db_path = get_database_path(path)
    if not read_only:
        _ensure_parent_dir(db_path)
    conn = duckdb.connect(str(db_path), read_only=read_only)
    if ensure and not read_only:
        ensure_schema(conn)
    return conn


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the metric and feature tables if they do not already exist."""

    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {CITY_METRICS_TABLE} (
            source TEXT NOT NULL,
            city_slug TEXT NOT NULL,
            city_name TEXT NOT NULL,
            observed_at TIMESTAMP NOT NULL,
            metric TEXT NOT NULL,
            value DOUBLE,
            unit TEXT NOT NULL,
            loaded_at TIMESTAMP NOT NULL,
            raw_payload JSON,
            PRIMARY KEY (source, city_slug, observed_at, metric)
        )
        """
    )
    conn.execute(
        f"""
        CREATE INDEX IF NOT EXISTS idx_{CITY_METRICS_TABLE}_city
        ON {CITY_METRICS_TABLE} (city_slug)
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {CITY_FEATURES_TABLE} (
            city_slug TEXT NOT NULL,
            city_name TEXT NOT NULL,
            computation_date DATE NOT NULL,
            computed_at TIMESTAMP NOT NULL,
            economy DOUBLE,
            livability DOUBLE,
            sustainability DOUBLE,
            growth DOUBLE,
            overall DOUBLE,
            data_completeness DOUBLE NOT NULL,
            confidence_score DOUBLE NOT NULL,
            payload JSON NOT NULL,
            PRIMARY KEY (city_slug, computation_date)
        )
        """
    )


def _serialize_metric(metric: CityMetric) -> tuple:
    raw_payload = metric.raw_payload
    return (
        metric.source,
        metric.city_slug,
        metric.city_name,
        _to_storage_time(metric.observed_at),
        metric.metric,
        metric.value,
        metric.unit,
        _to_storage_time(metric.loaded_at),
        json.dumps(raw_payload, default=str) if raw_payload is not None else None,
    )


def upsert_city_metrics(
    conn: duckdb.DuckDBPyConnection, metrics: Iterable[CityMetric]
) -> int:
    """Insert or replace a batch of ``CityMetric`` records.

    Returns
    -------
    int
        Number of records written to the database.
    """

    serialized = [_serialize_metric(metric) for metric in metrics]
    if not serialized:
        return 0

    conn.executemany(
        f"""
        INSERT OR REPLACE INTO {CITY_METRICS_TABLE} (
            source,
            city_slug,
            city_name,
            observed_at,
            metric,
            value,
            unit,
            loaded_at,
            raw_payload
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        serialized,
    )
    return len(serialized)


def fetch_city_metrics(
    conn: duckdb.DuckDBPyConnection,
    city_slug: str,
    *,
    metric: str | None = None,
    limit: int | None = None,
) -> list[CityMetric]:
    """Query stored observations for a city, newest first."""

    sql = (
        "SELECT source, city_slug, city_name, observed_at, metric, value, unit, loaded_at, raw_payload"
        f" FROM {CITY_METRICS_TABLE} WHERE city_slug = ?"
    )
    params: list[object] = [city_slug]
    if metric:
        sql += " AND metric = ?"
        params.append(metric)
    sql += " ORDER BY observed_at DESC, loaded_at DESC"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"

    results: list[CityMetric] = []
    for row in conn.execute(sql, params).fetchall():
        payload = row[8]
        results.append(
            CityMetric(
                source=row[0],
                city_slug=row[1],
                city_name=row[2],
                observed_at=_from_storage_time(row[3]),
                metric=row[4],
                value=row[5],
                unit=row[6],
                loaded_at=_from_storage_time(row[7]),
                raw_payload=json.loads(payload) if isinstance(payload, str) else payload,
            )
        )
    return results


def load_metric_input(
    conn: duckdb.DuckDBPyConnection,
    city_slug: str,
    *,
    city_name: str | None = None,
    as_of: datetime | None = None,
) -> AcquisitionResult[MetricSnapshot]:
    """Assemble the scoring snapshot for a city from stored observations."""

    return build_snapshot(
        fetch_city_metrics(conn, city_slug),
        city_slug=city_slug,
        city_name=city_name,
        as_of=as_of,
    )


def upsert_feature_set(
    conn: duckdb.DuckDBPyConnection,
    features: FeatureSet,
    *,
    computed_at: datetime | None = None,
) -> None:
    """Persist a feature set, replacing any earlier one for the same city and date."""

    conn.execute(
        f"""
        INSERT OR REPLACE INTO {CITY_FEATURES_TABLE} (
            city_slug,
            city_name,
            computation_date,
            computed_at,
            economy,
            livability,
            sustainability,
            growth,
            overall,
            data_completeness,
            confidence_score,
            payload
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            features.city_slug,
            features.city_name,
            features.computation_date,
            _to_storage_time(computed_at or datetime.now(UTC)),
            features.economy.value,
            features.livability.value,
            features.sustainability.value,
            features.growth.value,
            features.overall.value,
            features.data_completeness,
            features.confidence_score,
            json.dumps(features.to_payload()),
        ],
    )


def _feature_set_from_payload(payload: object) -> FeatureSet:
    data = json.loads(payload) if isinstance(payload, str) else payload
    return FeatureSet.model_validate(data)


def fetch_latest_feature_set(
    conn: duckdb.DuckDBPyConnection, city_slug: str
) -> FeatureSet | None:
    row = conn.execute(
        f"""
        SELECT payload FROM {CITY_FEATURES_TABLE}
        WHERE city_slug = ?
        ORDER BY computation_date DESC
        LIMIT 1
        """,
        [city_slug],
    ).fetchone()
    if row is None:
        return None
    return _feature_set_from_payload(row[0])


def fetch_rankings(
    conn: duckdb.DuckDBPyConnection,
    *,
    score: str = "overall",
    limit: int = 10,
) -> list[FeatureSet]:
    """Latest feature set per city, ordered by ``score`` descending; unscored cities are skipped."""

    if score not in RANKABLE_SCORES:
        raise ValueError(f"Unknown score '{score}'. Expected one of: {', '.join(RANKABLE_SCORES)}.")

    rows = conn.execute(
        f"""
        SELECT payload FROM (
            SELECT *,
                   ROW_NUMBER() OVER (
                       PARTITION BY city_slug ORDER BY computation_date DESC
                   ) AS recency
            FROM {CITY_FEATURES_TABLE}
        )
        WHERE recency = 1 AND {score} IS NOT NULL
        ORDER BY {score} DESC, city_slug
        LIMIT {int(limit)}
        """
    ).fetchall()
    return [_feature_set_from_payload(row[0]) for row in rows]


__all__ = [
    "CITY_FEATURES_TABLE",
    "CITY_METRICS_TABLE",
    "RANKABLE_SCORES",
    "connect",
    "ensure_schema",
    "fetch_city_metrics",
    "fetch_latest_feature_set",
    "fetch_rankings",
    "get_database_path",
    "load_metric_input",
    "upsert_city_metrics",
    "upsert_feature_set",
]
