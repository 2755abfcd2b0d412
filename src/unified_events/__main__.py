"""
Command-line search.

    python -m unified_events "jazz" --place "Austin, TX" --radius 25 --limit 10
    python -m unified_events --lat 30.27 --lng -97.74 --category Concerts --sort quality
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any

from unified_events.container import ApplicationContainer
from unified_events.domain.entities import EventQuery, SortOrder
from unified_events.shared.config import ALL_PROVIDERS, Settings
from unified_events.shared.exceptions import EventAggregationError

logger = logging.getLogger("unified_events")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="unified-events", description="Search events across providers")
    parser.add_argument("keyword", nargs="?", help="Free-text keyword")
    parser.add_argument("--lat", type=float, help="Search latitude")
    parser.add_argument("--lng", type=float, help="Search longitude")
    parser.add_argument("--place", help="Place name, geocoded when --lat/--lng are absent")
    parser.add_argument("--radius", type=float, default=40.0, help="Search radius in km (default: 40)")
    parser.add_argument("--category", action="append", default=[], help="Category filter (repeatable)")
    parser.add_argument("--start", type=date.fromisoformat, help="First date, YYYY-MM-DD")
    parser.add_argument("--end", type=date.fromisoformat, help="Last date, YYYY-MM-DD")
    parser.add_argument("--offset", type=int, default=0)
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--sort", choices=[s.value for s in SortOrder], default=SortOrder.DATE_ASC.value)
    parser.add_argument("--providers", help=f"Comma-separated subset of: {', '.join(ALL_PROVIDERS)}")
    parser.add_argument("--no-cache", action="store_true", help="Skip cache reads (results are still stored)")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def load_settings(config_path: str | None) -> Settings:
    base = Settings.from_yaml(config_path) if config_path else None
    return Settings.from_env(base)


async def run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    container = ApplicationContainer()
    container.config.from_dict(settings.to_dict())
    orchestrator = container.orchestrator()

    query = EventQuery(
        keyword=args.keyword,
        lat=args.lat,
        lng=args.lng,
        place=args.place,
        radius_km=args.radius,
        categories=tuple(args.category),
        start_date=args.start,
        end_date=args.end,
        offset=args.offset,
        limit=args.limit,
        sort=SortOrder(args.sort),
        bypass_cache=args.no_cache,
    )
    providers = [p.strip() for p in args.providers.split(",") if p.strip()] if args.providers else None
    try:
        result = await orchestrator.aggregate(query, enabled_providers=providers)
    finally:
        await orchestrator.aclose()
    return result.to_dict()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_settings(args.config)
        output = asyncio.run(run(args, settings))
    except EventAggregationError as e:
        logger.error(str(e))
        return 1

    json.dump(output, sys.stdout, indent=2, ensure_ascii=False, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
