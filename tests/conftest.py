from __future__ import annotations

from typing import List

import pytest

from chronodose_agent.config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        feed_base_url="https://feed.test/",
        booking_base_url="https://booking.test",
        settle_delay_seconds=0,
        feed_retry_attempts=1,
    )


@pytest.fixture
def no_sleep():
    calls: List[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls  # type: ignore[attr-defined]
    return _sleep
