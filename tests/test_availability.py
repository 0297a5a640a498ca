from __future__ import annotations

from datetime import date

import httpx
import pytest

from chronodose_agent.availability import AvailabilityProbe, flatten_slots, random_limit
from chronodose_agent.errors import ProbeError
from chronodose_agent.models import ResolvedIdentifierSet

from .fakes import BookingBackend, availability_document

IDS = ResolvedIdentifierSet(
    agenda_ids=frozenset({12, 10}),
    practice_ids=frozenset({5}),
    visit_motive_ids=frozenset({1}),
)


def _slot(day: int, hour: int) -> dict:
    return {"start_date": f"2021-05-{day:02d}T{hour:02d}:00:00.000+02:00"}


def test_flatten_uses_only_first_two_days():
    document = availability_document(
        [_slot(21, 9)],
        [_slot(22, 9), _slot(22, 10)],
        [_slot(23, 9)],
        [_slot(24, 9)],
        [_slot(25, 9)],
    )

    slots = flatten_slots(document, days=2)

    assert slots == [
        "2021-05-21T09:00:00.000+02:00",
        "2021-05-22T09:00:00.000+02:00",
        "2021-05-22T10:00:00.000+02:00",
    ]


def test_flatten_accepts_bare_strings_and_drops_unusable_slots():
    document = availability_document(
        ["2021-05-21T09:00:00.000+02:00", {"start_date": None}, {"steps": []}, 42, ""],
        [{"start_date": "2021-05-22T11:00:00.000+02:00"}],
    )

    assert flatten_slots(document) == ["2021-05-21T09:00:00.000+02:00", "2021-05-22T11:00:00.000+02:00"]


@pytest.mark.parametrize(
    "document",
    [
        {},
        {"availabilities": None},
        {"availabilities": [{"date": "2021-05-21"}, {"slots": None}]},
        [],
    ],
)
def test_flatten_tolerates_missing_buckets(document):
    assert flatten_slots(document) == []


def test_random_limit_stays_in_range(settings):
    settings = settings.model_copy(update={"limit_min": 3, "limit_max": 5})
    factory = random_limit(settings)

    assert all(3 <= factory() <= 5 for _ in range(50))


@pytest.mark.asyncio
async def test_probe_sends_expected_query(settings):
    backend = BookingBackend(availabilities=availability_document([_slot(21, 9)], [_slot(22, 9)], [_slot(23, 9)]))
    probe = AvailabilityProbe(settings, transport=backend.transport, limit_factory=lambda: 4)

    slots = await probe.probe(IDS, date(2021, 5, 21))

    assert slots == ["2021-05-21T09:00:00.000+02:00", "2021-05-22T09:00:00.000+02:00"]
    assert len(backend.requests) == 1
    request = backend.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/availabilities.json"
    assert list(request.url.params.multi_items()) == [
        ("start_date", "2021-05-21"),
        ("visit_motive_ids", "1"),
        ("agenda_ids", "10-12"),
        ("insurance_sector", "public"),
        ("practice_ids", "5"),
        ("destroy_temporary", "true"),
        ("limit", "4"),
    ]


@pytest.mark.asyncio
async def test_probe_server_error_raises_probe_error(settings):
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="maintenance"))
    probe = AvailabilityProbe(settings, transport=transport, limit_factory=lambda: 4)

    with pytest.raises(ProbeError):
        await probe.probe(IDS, date(2021, 5, 21))


@pytest.mark.asyncio
async def test_probe_invalid_json_raises_probe_error(settings):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>captcha</html>"))
    probe = AvailabilityProbe(settings, transport=transport, limit_factory=lambda: 4)

    with pytest.raises(ProbeError):
        await probe.probe(IDS, date(2021, 5, 21))


@pytest.mark.asyncio
async def test_probe_transport_error_raises_probe_error(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    probe = AvailabilityProbe(settings, transport=httpx.MockTransport(handler), limit_factory=lambda: 4)

    with pytest.raises(ProbeError):
        await probe.probe(IDS, date(2021, 5, 21))
