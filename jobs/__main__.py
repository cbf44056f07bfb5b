"""Command-line entrypoint for batch jobs."""

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Iterable

from jobs.config import TARGET_CITIES, CityConfig, get_city_by_slug, iter_cities
from jobs.load_all import main as run_load_all
from jobs.load_all import score_city
from storage.db import connect


def _format_city(city: CityConfig) -> str:
    population = f"{city.population:,}" if city.population is not None else "(unknown)"
    col = f"{city.cost_of_living_index:g}" if city.cost_of_living_index is not None else "(unknown)"
    return (
        f"{city.slug}: name='{city.name}' country={city.country_code} "
        f"coords={city.latitude:.4f},{city.longitude:.4f} population={population} cost_of_living={col}"
    )


def _resolve_cities_from_cli(slugs: Iterable[str] | None) -> tuple[CityConfig, ...]:
    if not slugs:
        return tuple()
    cities = tuple(iter_cities(slugs))
    unknown = set(slugs) - {c.slug for c in cities}
    if unknown:
        raise SystemExit(f"Unknown city slugs: {', '.join(sorted(unknown))}")
    return cities


def _score(slug: str) -> int:
    city = get_city_by_slug(slug)
    if city is None:
        raise SystemExit(f"Unknown city slug: {slug}")

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    conn = connect()
    try:
        result = score_city(conn, city)
    finally:
        conn.close()

    if not result.ok:
        print(f"{slug}: {result.kind.value}: {result.detail}")
        return 1
    print(json.dumps(result.unwrap().to_payload(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CityAtlas scoring job runner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser(
        "load-all", help="Fetch metrics for configured cities, score them and persist to DuckDB"
    )
    load_parser.add_argument(
        "--cities",
        help="Comma-separated list of city slugs to load (defaults to all configured)",
    )
    load_parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this invocation (e.g. DEBUG, INFO)",
    )

    subparsers.add_parser("list-cities", help="Show configured city metadata")

    score_parser = subparsers.add_parser(
        "score", help="Print the feature set computed from a city's stored metrics"
    )
    score_parser.add_argument("--city", required=True, help="City slug to score")

    args = parser.parse_args(argv)

    if args.command == "list-cities":
        for city in TARGET_CITIES:
            print(_format_city(city))
        return 0

    if args.command == "load-all":
        cities_arg = args.cities.split(",") if args.cities else None
        cities_arg = [item.strip() for item in cities_arg or [] if item.strip()]
        cities = _resolve_cities_from_cli(cities_arg)
        if args.log_level:
            os.environ["LOG_LEVEL"] = args.log_level
        if cities:
            return run_load_all(cities)
        return run_load_all(None)

    if args.command == "score":
        return _score(args.city)

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
