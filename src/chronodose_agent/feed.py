"""Bulk per-department availability snapshots."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, List, Optional

import httpx
import structlog
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .config import Settings
from .errors import FeedError
from .models import CentersInDepartment

LOGGER = structlog.get_logger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """Transport failures and 5xx answers are retried; 4xx answers are final."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


async def fetch_department(
    client: httpx.AsyncClient,
    settings: Settings,
    code: int,
    *,
    wait: Optional[Any] = None,
) -> CentersInDepartment:
    """Download and decode one department snapshot, retrying transient failures."""
    url = settings.department_url(code)
    LOGGER.info("feed.fetch.start", department=code, url=url)

    try:
        async for attempt in AsyncRetrying(
            wait=wait or wait_exponential(multiplier=1, min=1, max=8),
            stop=stop_after_attempt(settings.feed_retry_attempts),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                response = await client.get(url)
                response.raise_for_status()
                payload = response.json()
    except httpx.HTTPError as exc:
        raise FeedError(f"Department {code:02d} request failed: {exc}") from exc
    except ValueError as exc:
        raise FeedError(f"Department {code:02d} snapshot is not valid JSON") from exc

    try:
        return CentersInDepartment.model_validate(payload)
    except ValidationError as exc:
        raise FeedError(f"Department {code:02d} snapshot has an unexpected shape") from exc


async def fetch_departments(
    settings: Settings,
    codes: Iterable[int],
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    wait: Optional[Any] = None,
) -> List[CentersInDepartment]:
    """Fetch all departments concurrently; failed departments are skipped."""
    codes = list(codes)
    async with httpx.AsyncClient(timeout=settings.timeout_seconds, transport=transport) as client:
        outcomes = await asyncio.gather(
            *(fetch_department(client, settings, code, wait=wait) for code in codes),
            return_exceptions=True,
        )

    departments: List[CentersInDepartment] = []
    for code, outcome in zip(codes, outcomes):
        if isinstance(outcome, CentersInDepartment):
            departments.append(outcome)
        elif isinstance(outcome, FeedError):
            LOGGER.warning("feed.department_failed", department=code, error=str(outcome))
        else:
            raise outcome

    LOGGER.info("feed.parsed", departments=len(departments), requested=len(codes))
    return departments
