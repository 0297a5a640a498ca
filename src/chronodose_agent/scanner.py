"""Per-center live scan: resolve motives, probe the calendar, verify slots."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

import httpx
import structlog

from .availability import AvailabilityProbe, LimitFactory
from .config import Settings
from .dates import parse_timestamp, probe_start_date, within_window
from .errors import MalformedUrl, MetadataFetchError, ScanError
from .models import BookingMetadata, ScanResult, VerificationOutcome
from .motives import resolve
from .verifier import SlotVerifier, Sleep

LOGGER = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BookingTarget:
    """Identifiers carried by a public booking page URL."""

    center_slug: str
    practice_id: str


def parse_booking_url(url: str) -> BookingTarget:
    """
    Extract the center slug and practice id hint from a booking page URL.

    ``https://host/centre/paris/some-center?pid=practice-5`` gives slug
    ``some-center`` and practice id ``5``.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise MalformedUrl(f"Unparseable booking URL: {url!r}") from exc

    # Encoded path: the slug is reused verbatim in request paths.
    raw_path = parsed.raw_path.split(b"?", 1)[0].decode("ascii")
    segments = [segment for segment in raw_path.split("/") if segment]
    if not segments:
        raise MalformedUrl(f"No center slug in booking URL: {url!r}")

    pid = parsed.params.get("pid")
    if not pid or "-" not in pid:
        raise MalformedUrl(f"No practice id in booking URL: {url!r}")
    practice_id = pid.split("-", 1)[1]
    if not practice_id:
        raise MalformedUrl(f"Empty practice id in booking URL: {url!r}")

    return BookingTarget(center_slug=segments[-1], practice_id=practice_id)


class CenterScanner:
    """Counts genuinely bookable short-notice slots for live backend centers."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
        limit_factory: Optional[LimitFactory] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._settings = settings
        self._transport = transport
        self._clock = clock or _utc_now
        self._probe = AvailabilityProbe(settings, transport=transport, limit_factory=limit_factory)
        self._verifier = SlotVerifier(settings, transport=transport, sleep=sleep)

    async def fetch_metadata(self, center_slug: str) -> BookingMetadata:
        try:
            async with httpx.AsyncClient(
                base_url=self._settings.booking_base_url,
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(f"/booking/{center_slug}.json")
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise MetadataFetchError(f"Booking metadata request failed for {center_slug}: {exc}") from exc
        except ValueError as exc:
            raise MetadataFetchError(f"Booking metadata for {center_slug} is not valid JSON") from exc

        return BookingMetadata.from_payload(payload)

    def short_notice(self, slots: Iterable[str], now: datetime) -> List[str]:
        """Keep slots starting within the chronodose window after ``now``."""
        kept: List[str] = []
        for slot in slots:
            start = parse_timestamp(slot, naive_offset_hours=self._settings.naive_utc_offset_hours)
            if start is None:
                LOGGER.debug("scan.slot_unparseable", slot=slot)
                continue
            if within_window(start, now, hours=self._settings.chronodose_window_hours):
                kept.append(slot)
        return kept

    async def scan(self, url: str, lookahead_days: Optional[int] = None) -> ScanResult:
        """Scan one center; any failure degrades to a zero count."""
        if lookahead_days is None:
            lookahead_days = self._settings.lookahead_days
        try:
            count = await self._scan(url, lookahead_days)
        except ScanError as exc:
            LOGGER.warning("scan.degraded", url=url, failure=exc.kind, error=str(exc))
            return ScanResult.degraded(url, exc.kind)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("scan.crashed", url=url, error=str(exc))
            return ScanResult.degraded(url, type(exc).__name__)
        return ScanResult(url=url, count=count)

    async def _scan(self, url: str, lookahead_days: int) -> int:
        target = parse_booking_url(url)
        LOGGER.info("scan.start", url=url, center_slug=target.center_slug, practice_id=target.practice_id)

        metadata = await self.fetch_metadata(target.center_slug)
        ids = resolve(metadata, target.practice_id)
        if ids.is_empty:
            LOGGER.info("scan.no_matching_motive", url=url)
            return 0

        start_date = probe_start_date(self._clock(), lookahead_days)
        slots = await self._probe.probe(ids, start_date)

        candidates = self.short_notice(slots, self._clock())
        if not candidates:
            LOGGER.info("scan.no_short_notice_slot", url=url, probed=len(slots))
            return 0

        outcomes = await self._verifier.verify(ids, candidates)
        count = sum(1 for outcome in outcomes if outcome is VerificationOutcome.FREE)
        LOGGER.info(
            "scan.complete",
            url=url,
            center=metadata.display_name,
            start_date=start_date.isoformat(),
            count=count,
        )
        return count

    async def scan_many(self, urls: Iterable[str], lookahead_days: Optional[int] = None) -> Dict[str, ScanResult]:
        """Scan centers concurrently, bounded by ``max_concurrent_scans``."""
        unique = list(dict.fromkeys(urls))
        semaphore = asyncio.Semaphore(self._settings.max_concurrent_scans)

        async def bounded(url: str) -> ScanResult:
            async with semaphore:
                return await self.scan(url, lookahead_days)

        outcomes = await asyncio.gather(*(bounded(url) for url in unique), return_exceptions=True)

        results: Dict[str, ScanResult] = {}
        for url, outcome in zip(unique, outcomes):
            if isinstance(outcome, ScanResult):
                results[url] = outcome
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            LOGGER.error("scan.crashed", url=url, error=str(outcome), exc_info=outcome)
            results[url] = ScanResult.degraded(url, type(outcome).__name__)
        return results
