"""FastAPI service exposing city metrics and CityAtlas scores in multiple formats."""

from __future__ import annotations

import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, NoReturn, Sequence

import duckdb
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from dotenv import load_dotenv

from jobs.config import TARGET_CITIES, CityConfig, get_city_by_slug
from jobs.load_all import score_city
from pipelines.model import CityMetric
from pipelines.result import AcquisitionResult, ResultKind
from scoring.engine import compute
from scoring.model import MetricInput
from scoring.quality import check_metric_quality
from storage.db import RANKABLE_SCORES, connect, fetch_city_metrics, fetch_rankings, load_metric_input
from storage.exports import export_city_metrics

DEFAULT_LIMIT = 200
MAX_LIMIT = 2000
ALLOWED_FORMATS = {"json", "csv", "parquet"}
load_dotenv()

_STATUS_BY_KIND = {
    ResultKind.NOT_FOUND: 404,
    ResultKind.UPSTREAM_UNAVAILABLE: 503,
    ResultKind.VALIDATION_ERROR: 422,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    conn = connect()
    conn.close()
    yield


app = FastAPI(title="CityAtlas Scores API", version="0.1.0", lifespan=lifespan)


def _configure_cors() -> None:
    raw_origins = os.getenv("API_CORS_ORIGINS", "*")
    origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )


_configure_cors()


def _require_city(slug: str) -> CityConfig:
    city = get_city_by_slug(slug)
    if not city:
        raise HTTPException(status_code=404, detail=f"Unknown city slug '{slug}'")
    return city


def _raise_for_result(result: AcquisitionResult[Any]) -> NoReturn:
    raise HTTPException(
        status_code=_STATUS_BY_KIND.get(result.kind, 500),
        detail=result.detail or result.kind.value,
    )


def _serialize_metrics(metrics: Sequence[CityMetric]) -> list[dict[str, Any]]:
    return [metric.model_dump(mode="json") for metric in metrics]


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/cities")
def list_cities() -> dict[str, Any]:
    items = [asdict(city) for city in TARGET_CITIES]
    return {"count": len(items), "items": items}


@app.get("/cities/{slug}/metrics")
def get_city_metrics(
    slug: str,
    background_tasks: BackgroundTasks,
    format: str = Query("json", description="Response format: json, csv, or parquet"),
    metric: str | None = Query(None, description="Metric identifier to filter"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Maximum records returned"),
):
    fmt = format.lower()
    if fmt not in ALLOWED_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format '{format}'.")
    city = _require_city(slug)

    conn = connect(read_only=True)
    try:
        if fmt == "json":
            metrics = fetch_city_metrics(conn, city.slug, metric=metric, limit=limit)
            payload = {
                "count": len(metrics),
                "items": _serialize_metrics(metrics),
            }
            return JSONResponse(content=payload)

        suffix = ".csv" if fmt == "csv" else ".parquet"
        media_type = "text/csv" if fmt == "csv" else "application/vnd.apache.parquet"
        filename = f"{city.slug}-metrics{suffix}"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            dest = Path(tmp.name)

        export_city_metrics(conn, dest, fmt, city_slug=city.slug, metric=metric)

        def _cleanup(path: Path) -> None:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

        background_tasks.add_task(_cleanup, dest)
        return FileResponse(dest, media_type=media_type, filename=filename, background=background_tasks)
    except duckdb.Error as exc:  # pragma: no cover
        raise HTTPException(status_code=500, detail="Database query failed") from exc
    finally:
        conn.close()


@app.get("/cities/{slug}/features")
def get_city_features(slug: str) -> dict[str, Any]:
    """Score a city from its stored metrics at request time."""

    city = _require_city(slug)
    conn = connect(read_only=True)
    try:
        result = score_city(conn, city)
    except duckdb.Error as exc:  # pragma: no cover
        raise HTTPException(status_code=500, detail="Database query failed") from exc
    finally:
        conn.close()

    if not result.ok:
        _raise_for_result(result)
    return result.unwrap().to_payload()


@app.get("/cities/{slug}/quality")
def get_city_quality(slug: str) -> dict[str, Any]:
    city = _require_city(slug)
    conn = connect(read_only=True)
    try:
        result = load_metric_input(conn, city.slug, city_name=city.name)
    except duckdb.Error as exc:  # pragma: no cover
        raise HTTPException(status_code=500, detail="Database query failed") from exc
    finally:
        conn.close()

    if not result.ok:
        _raise_for_result(result)
    snapshot = result.unwrap()
    report = check_metric_quality(snapshot.metrics)
    return {
        "citySlug": snapshot.city_slug,
        "asOf": snapshot.as_of.isoformat(),
        **report.as_dict(),
    }


@app.get("/rankings")
def get_rankings(
    score: str = Query("overall", description=f"One of: {', '.join(RANKABLE_SCORES)}"),
    limit: int = Query(10, ge=1, le=100, description="Maximum cities returned"),
) -> dict[str, Any]:
    if score not in RANKABLE_SCORES:
        raise HTTPException(status_code=422, detail=f"Unknown score '{score}'.")

    conn = connect(read_only=True)
    try:
        feature_sets = fetch_rankings(conn, score=score, limit=limit)
    except duckdb.Error as exc:  # pragma: no cover
        raise HTTPException(status_code=500, detail="Database query failed") from exc
    finally:
        conn.close()

    items = []
    for rank, features in enumerate(feature_sets, start=1):
        selected = getattr(features, score)
        items.append(
            {
                "rank": rank,
                "citySlug": features.city_slug,
                "cityName": features.city_name,
                "score": selected.value,
                "tier": selected.tier.value,
                "computationDate": features.computation_date.isoformat(),
            }
        )
    return {"score": score, "count": len(items), "items": items}


@app.post("/score")
def score_metrics(
    metrics: MetricInput,
    as_of: datetime | None = Query(None, description="When the metrics were observed (defaults to now)"),
    city_slug: str = Query("", description="Optional city identifier echoed in the result"),
    city_name: str = Query("", description="Optional display name echoed in the result"),
) -> dict[str, Any]:
    """Score an ad-hoc set of metrics without touching storage."""

    features = compute(
        metrics,
        as_of or datetime.now(UTC),
        city_slug=city_slug,
        city_name=city_name,
    )
    return features.to_payload()
