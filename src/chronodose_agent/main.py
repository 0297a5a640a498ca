"""Entry point for the chronodose agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from .config import Settings
from .pipeline import collect_center_infos
from .report import format_table


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Find verified short-notice vaccination slots near a location.")
    parser.add_argument("--departments", type=int, nargs="+", help="Department codes to load from the feed.")
    parser.add_argument("--location", type=str, help="Reference point as LAT,LONG.")
    parser.add_argument("--radius-km", type=float, help="Maximum distance from the reference point.")
    parser.add_argument("--vaccine", type=str, help="Vaccine name to match in the feed.")
    parser.add_argument("--lookahead-days", type=int, help="Days from today the availability probe starts at.")
    parser.add_argument("--max-concurrency", type=int, help="Maximum number of centers scanned at once.")
    return parser.parse_args(argv)


def parse_location(raw: str) -> Tuple[float, float]:
    """Parse ``LAT,LONG`` into floats."""
    latitude, sep, longitude = raw.partition(",")
    if not sep:
        raise ValueError(f"expected LAT,LONG, got {raw!r}")
    return float(latitude.strip()), float(longitude.strip())


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.departments:
        overrides["departments"] = args.departments
    if args.location:
        try:
            overrides["reference_latitude"], overrides["reference_longitude"] = parse_location(args.location)
        except ValueError as exc:
            raise SystemExit(f"Invalid --location: {args.location}") from exc
    if args.radius_km is not None:
        overrides["radius_km"] = args.radius_km
    if args.vaccine:
        overrides["vaccine"] = args.vaccine
    if args.lookahead_days is not None:
        overrides["lookahead_days"] = args.lookahead_days
    if args.max_concurrency is not None:
        overrides["max_concurrent_scans"] = args.max_concurrency
    return overrides


async def run(settings: Settings) -> str:
    """Collect, rank and render nearby centers."""
    infos = await collect_center_infos(settings)
    LOGGER.info("agent.complete", centers=len(infos))
    return format_table(infos)


def cli(argv: Optional[List[str]] = None) -> int:
    """Console script entrypoint."""
    args = parse_args(argv)
    overrides = cli_overrides(args)

    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        configure_logging()
        LOGGER.error("settings.error", error=str(exc))
        return 2

    configure_logging(getattr(logging, settings.log_level.upper(), logging.INFO))

    try:
        table = asyncio.run(run(settings))
    except Exception as exc:  # pragma: no cover - top level
        LOGGER.exception("agent.failed", error=str(exc))
        return 1

    print(table)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
