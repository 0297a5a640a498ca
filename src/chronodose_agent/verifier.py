"""Claim-based slot verification against the live booking backend.

The availability calendar over-reports, so each candidate slot is checked by
actually submitting a reservation. A successful claim places a short-lived hold
tied to the session cookie; the backend keeps a single hold per session, so a
final claim on a slot that cannot exist (the decoy) makes it drop the real one.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Optional

import httpx
import structlog

from .config import Settings
from .dates import parse_timestamp, to_rfc3339
from .models import ResolvedIdentifierSet, VerificationOutcome

LOGGER = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def classify_claim(body: Any) -> VerificationOutcome:
    """An ``error`` key means the slot is taken, anything else is a created hold."""
    if not isinstance(body, dict):
        return VerificationOutcome.PROBE_FAILED
    if "error" in body:
        return VerificationOutcome.TAKEN
    return VerificationOutcome.FREE


def decoy_timestamp(anchor_slot: str, *, offset_days: int, naive_offset_hours: int) -> str:
    anchor = parse_timestamp(anchor_slot, naive_offset_hours=naive_offset_hours)
    if anchor is None:
        anchor = datetime.now(timezone.utc)
    return to_rfc3339(anchor + timedelta(days=offset_days))


class ClaimSession:
    """One cookie-carrying client used for a single verification pass."""

    def __init__(
        self,
        settings: Settings,
        ids: ResolvedIdentifierSet,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._settings = settings
        self._ids = ids
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._released = False
        self.attempts = 0

    async def __aenter__(self) -> "ClaimSession":
        self._client = httpx.AsyncClient(
            base_url=self._settings.booking_base_url,
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _payload(self, slot: str) -> dict[str, Any]:
        return {
            "agenda_ids": self._ids.agenda_param,
            "practice_ids": [self._ids.practice_param],
            "appointment": {
                "start_date": slot,
                "visit_motive_ids": self._ids.visit_motive_param,
            },
        }

    def _require_open(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Claim session has not been opened")
        if self._released:
            raise RuntimeError("Claim session was already released")
        return self._client

    async def _submit(self, slot: str) -> Any:
        client = self._require_open()
        response = await client.post("/appointments.json", json=self._payload(slot))
        return response.json()

    async def attempt_claim(self, slot: str) -> VerificationOutcome:
        """Try to reserve ``slot``; transport or decode failures only affect this slot."""
        self._require_open()
        self.attempts += 1
        try:
            body = await self._submit(slot)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("verify.claim_failed", slot=slot, error=str(exc))
            return VerificationOutcome.PROBE_FAILED

        outcome = classify_claim(body)
        LOGGER.info("verify.claim", slot=slot, outcome=outcome.value)
        return outcome

    async def release_via_decoy(self, anchor_slot: str) -> None:
        """Claim an out-of-window slot so the backend drops the held one."""
        self._require_open()
        await self._sleep(self._settings.settle_delay_seconds)

        decoy = decoy_timestamp(
            anchor_slot,
            offset_days=self._settings.decoy_offset_days,
            naive_offset_hours=self._settings.naive_utc_offset_hours,
        )
        try:
            body = await self._submit(decoy)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("verify.decoy_failed", decoy=decoy, error=str(exc))
            return
        finally:
            self._released = True

        if classify_claim(body) is VerificationOutcome.TAKEN:
            LOGGER.info("verify.decoy_released", decoy=decoy)
        else:
            LOGGER.warning("verify.decoy_mismatch", decoy=decoy, body=body)


class SlotVerifier:
    """Classifies candidate slots of one center by claiming them in sequence."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._settings = settings
        self._transport = transport
        self._sleep = sleep

    async def verify(self, ids: ResolvedIdentifierSet, slots: Iterable[str]) -> List[VerificationOutcome]:
        candidates = list(slots)
        if not candidates:
            return []

        outcomes: List[VerificationOutcome] = []
        async with ClaimSession(self._settings, ids, transport=self._transport, sleep=self._sleep) as session:
            try:
                for slot in candidates:
                    outcomes.append(await session.attempt_claim(slot))
            finally:
                if session.attempts:
                    await session.release_via_decoy(candidates[0])

        LOGGER.info(
            "verify.complete",
            candidates=len(candidates),
            free=sum(1 for outcome in outcomes if outcome is VerificationOutcome.FREE),
        )
        return outcomes
