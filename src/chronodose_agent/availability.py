"""Live availability calendar queries."""

from __future__ import annotations

import random
from datetime import date
from typing import Any, Callable, List, Optional

import httpx
import structlog

from .config import Settings
from .errors import ProbeError
from .models import ResolvedIdentifierSet

LOGGER = structlog.get_logger(__name__)

LimitFactory = Callable[[], int]


def random_limit(settings: Settings) -> LimitFactory:
    """Page-size jitter drawn from the configured narrow range."""
    return lambda: random.randint(settings.limit_min, settings.limit_max)


def flatten_slots(document: Any, *, days: int = 2) -> List[str]:
    """Collect slot timestamps from the first ``days`` daily buckets."""
    if not isinstance(document, dict):
        return []
    buckets = document.get("availabilities")
    if not isinstance(buckets, list):
        return []

    slots: List[str] = []
    for bucket in buckets[:days]:
        if not isinstance(bucket, dict) or not isinstance(bucket.get("slots"), list):
            continue
        for slot in bucket["slots"]:
            if isinstance(slot, dict):
                slot = slot.get("start_date")
            if isinstance(slot, str) and slot:
                slots.append(slot)
    return slots


class AvailabilityProbe:
    """Single round trip to the availability calendar."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limit_factory: Optional[LimitFactory] = None,
    ):
        self._settings = settings
        self._transport = transport
        self._limit_factory = limit_factory or random_limit(settings)

    def build_params(self, ids: ResolvedIdentifierSet, start_date: date) -> List[tuple[str, str]]:
        return [
            ("start_date", start_date.isoformat()),
            ("visit_motive_ids", ids.visit_motive_param),
            ("agenda_ids", ids.agenda_param),
            ("insurance_sector", "public"),
            ("practice_ids", ids.practice_param),
            ("destroy_temporary", "true"),
            ("limit", str(self._limit_factory())),
        ]

    async def probe(self, ids: ResolvedIdentifierSet, start_date: date) -> List[str]:
        """Return candidate slot timestamps for today and tomorrow of ``start_date``."""
        params = self.build_params(ids, start_date)
        LOGGER.info("probe.start", start_date=start_date.isoformat(), agenda_ids=ids.agenda_param)

        try:
            async with httpx.AsyncClient(
                base_url=self._settings.booking_base_url,
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get("/availabilities.json", params=params)
                response.raise_for_status()
                document = response.json()
        except httpx.HTTPError as exc:
            raise ProbeError(f"Availability request failed: {exc}") from exc
        except ValueError as exc:
            raise ProbeError("Availability response is not valid JSON") from exc

        slots = flatten_slots(document, days=self._settings.probe_days)
        LOGGER.info("probe.slots", start_date=start_date.isoformat(), count=len(slots))
        return slots
