"""File exports of stored city metrics, backed by DuckDB's COPY command."""

from __future__ import annotations

from pathlib import Path

import duckdb

from storage.db import CITY_METRICS_TABLE

EXPORT_FORMATS = {
    "csv": "FORMAT CSV, HEADER TRUE",
    "parquet": "FORMAT PARQUET",
}

_EXPORT_COLUMNS = "source, city_slug, city_name, observed_at, metric, value, unit, loaded_at"


def city_metrics_query(*, metric: str | None = None) -> str:
    sql = f"SELECT {_EXPORT_COLUMNS} FROM {CITY_METRICS_TABLE} WHERE city_slug = ?"
    if metric:
        sql += " AND metric = ?"
    return sql + " ORDER BY metric, observed_at"


def export_city_metrics(
    conn: duckdb.DuckDBPyConnection,
    destination: str | Path,
    fmt: str,
    *,
    city_slug: str,
    metric: str | None = None,
) -> Path:
    """Write one city's raw metrics to ``destination`` as CSV or Parquet."""

    options = EXPORT_FORMATS.get(fmt.lower())
    if options is None:
        raise ValueError(f"Unsupported export format '{fmt}'.")

    dest_path = Path(destination)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    sanitized_path = str(dest_path).replace("'", "''")
    params: list[str] = [city_slug]
    if metric:
        params.append(metric)
    conn.execute(
        f"COPY ({city_metrics_query(metric=metric)}) TO '{sanitized_path}' ({options})",
        params,
    )
    return dest_path


__all__ = ["EXPORT_FORMATS", "city_metrics_query", "export_city_metrics"]
