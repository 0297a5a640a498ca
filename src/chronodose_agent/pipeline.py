"""End-to-end collection: bulk feed, proximity filter, live verification, ranking."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import httpx
import structlog

from .config import Settings
from .dates import to_rfc2822
from .feed import fetch_departments
from .geo import within_radius
from .models import Center, CenterInfo, CentersInDepartment
from .scanner import CenterScanner

LOGGER = structlog.get_logger(__name__)


def eligible_centers(departments: Iterable[CentersInDepartment], vaccine: str) -> List[Center]:
    """Available centers advertising chronodoses for the searched vaccine."""
    return [
        center
        for department in departments
        for center in department.centres_disponibles
        if center.has_chronodose() and center.has_vaccine(vaccine)
    ]


def nearby_centers(centers: Iterable[Center], settings: Settings) -> List[Tuple[Center, float]]:
    nearby: List[Tuple[Center, float]] = []
    for center in centers:
        distance = center.distance_km(settings.reference_latitude, settings.reference_longitude)
        if within_radius(distance, settings.radius_km):
            nearby.append((center, distance))
    return nearby


def build_info(center: Center, distance: float, n_slot: int) -> CenterInfo:
    return CenterInfo(
        distance=round(distance, 2),
        n_slot=n_slot,
        date=to_rfc2822(center.prochain_rdv),
        address=center.metadata.address,
        url=center.url,
    )


async def collect_center_infos(
    settings: Settings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    scanner: Optional[CenterScanner] = None,
) -> List[CenterInfo]:
    """Rank nearby centers by distance with verified short-notice slot counts."""
    departments = await fetch_departments(settings, settings.departments, transport=transport)
    candidates = nearby_centers(eligible_centers(departments, settings.vaccine), settings)
    LOGGER.info("pipeline.candidates", count=len(candidates), radius_km=settings.radius_km)

    scanner = scanner or CenterScanner(settings, transport=transport)
    live_urls = [center.url for center, _ in candidates if center.is_live_verifiable]
    scans = await scanner.scan_many(live_urls) if live_urls else {}

    infos: List[CenterInfo] = []
    for center, distance in candidates:
        if center.is_live_verifiable:
            n_slot = scans[center.url].count
        else:
            n_slot = center.chronodose_total()
        infos.append(build_info(center, distance, n_slot))

    infos.sort()
    return infos
